"""
Raw HTTP/2 exchange engine.

This module provides a low-level HTTP/2 client that gives complete control
over what reaches the wire, including requests no conformant client would
send: illegal methods, bodies on GET, mixed-case header names, content-length
values that disagree with the body.
"""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

import hpack

from h2raw.clients.connection import H2Connection
from h2raw.clients.framing import (
    ReceivedContinuation,
    ReceivedData,
    ReceivedFrame,
    ReceivedGoAway,
    ReceivedHeaders,
    ReceivedRstStream,
)
from h2raw.clients.request import Request
from h2raw.clients.response import Response
from h2raw.errors import (
    ExchangeTimeout,
    GoAwayReceived,
    ProtocolDecodeError,
    ResourceLimitExceeded,
    StreamResetReceived,
)
from h2raw.utils.endpoint import validate_endpoint
from h2raw.utils.logging import format_hex, get_logger, log_request, log_response
from h2raw.utils.tls import TrustConfig

DEFAULT_STREAM_ID = 1


def describe_frame(frame: ReceivedFrame) -> str:
    """One-line summary of a received frame for logging."""
    if isinstance(frame, ReceivedHeaders):
        return (
            f"HEADERS stream={frame.stream_id} len={len(frame.block)} "
            f"end_stream={frame.end_stream} end_headers={frame.end_headers}"
        )
    if isinstance(frame, ReceivedContinuation):
        return (
            f"CONTINUATION stream={frame.stream_id} len={len(frame.block)} "
            f"end_headers={frame.end_headers}"
        )
    if isinstance(frame, ReceivedData):
        return f"DATA stream={frame.stream_id} len={len(frame.data)} end_stream={frame.end_stream}"
    if isinstance(frame, ReceivedGoAway):
        return f"GOAWAY last_stream={frame.last_stream_id} error={frame.error_code}"
    if isinstance(frame, ReceivedRstStream):
        return f"RST_STREAM stream={frame.stream_id} error={frame.error_code}"
    return (
        f"type={frame.frame_type:#x} flags={frame.flags:#x} stream={frame.stream_id} "
        f"payload={format_hex(frame.payload)}"
    )


def _text(raw: bytes) -> str:
    return raw.decode('utf-8', errors='surrogateescape')


class HTTP2Client:
    """Raw HTTP/2 client performing one request/response exchange per stream.

    Features:
    - Plain (prior knowledge) or TLS transport with caller controlled trust
    - Optional "allow illegal" sessions that skip all frame conformance checks
    - Requests are encoded exactly as built, nothing is added or corrected
    - Responses are reassembled from whatever frames the peer sends

    The client holds configuration only. Sessions are created per exchange
    with ``new_connection`` and owned by the caller.
    """

    def __init__(
        self,
        use_tls: bool = True,
        trust: Optional[TrustConfig] = None,
        allow_illegal: bool = False,
        verbose: bool = False,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        max_body_size: Optional[int] = None,
        force_http2: bool = True,
    ) -> None:
        """Initialize a new HTTP/2 client.

        Args:
            use_tls: Whether to use TLS (HTTPS)
            trust: TLS trust configuration, the insecure preset if None
            allow_illegal: Open sessions that skip frame conformance checks
            verbose: Log complete requests and every received frame
            timeout: Deadline in seconds for receiving a whole response
            connect_timeout: Connection timeout in seconds
            read_timeout: Timeout in seconds for each frame read
            max_body_size: Largest response body accepted, in bytes
            force_http2: Keep TLS sessions even if ALPN did not select h2
        """
        self.use_tls = use_tls
        self.trust = trust
        self.allow_illegal = allow_illegal
        self.verbose = verbose
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_body_size = max_body_size
        self.force_http2 = force_http2
        self.logger = get_logger()

    @classmethod
    def plain(cls, **kwargs) -> "HTTP2Client":
        """Client speaking HTTP/2 with prior knowledge over plain TCP."""
        return cls(use_tls=False, **kwargs)

    @classmethod
    def tls(cls, trust: TrustConfig, **kwargs) -> "HTTP2Client":
        """Client speaking HTTP/2 over TLS with the given trust settings."""
        return cls(use_tls=True, trust=trust, **kwargs)

    @classmethod
    def tls_insecure(cls, **kwargs) -> "HTTP2Client":
        """TLS client that skips certificate verification."""
        return cls(use_tls=True, trust=TrustConfig.insecure(), **kwargs)

    def _log_verbose(self, message: str) -> None:
        if self.verbose:
            self.logger.info(message)
        else:
            self.logger.debug(message)

    async def new_connection(self, endpoint: str) -> H2Connection:
        """Validate ``endpoint`` and open a session to it.

        Args:
            endpoint: Endpoint in ``host:port`` form

        Raises:
            ConfigError: If the endpoint string is invalid
            ConnectError: If the connection cannot be established
        """
        return await H2Connection.open(
            validate_endpoint(endpoint),
            use_tls=self.use_tls,
            trust=self.trust,
            allow_illegal=self.allow_illegal,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            force_http2=self.force_http2,
        )

    async def request(
        self,
        endpoint: str,
        request: Request,
        stream_id: int = DEFAULT_STREAM_ID,
    ) -> Response:
        """Open a session, perform one exchange on it and close it again."""
        connection = await self.new_connection(endpoint)
        async with connection:
            return await self.make_request(connection, request, stream_id)

    async def make_request(
        self,
        connection: H2Connection,
        request: Request,
        stream_id: int = DEFAULT_STREAM_ID,
    ) -> Response:
        """Perform one request/response exchange on ``connection``.

        The session is initialized first if needed. The request is sent in
        full before any frame is read.

        Args:
            connection: Session to use, exclusively, for this exchange
            request: Request to send, read only
            stream_id: Stream identifier to send the request on

        Returns:
            The assembled response

        Raises:
            TransportIOError: If a read or write on the connection fails
            ProtocolDecodeError: If a header block or frame cannot be decoded
            RemoteTermination: If the peer sends GOAWAY or RST_STREAM
            ExchangeTimeout: If a configured deadline expires
            ResourceLimitExceeded: If the body outgrows ``max_body_size``
        """
        start_time = time.time()
        await self.send_request(connection, request, stream_id)

        if self.timeout is None:
            response = await self.read_response(connection)
        else:
            try:
                response = await asyncio.wait_for(
                    self.read_response(connection), timeout=self.timeout
                )
            except asyncio.TimeoutError as e:
                self.logger.debug(f"Timeout waiting for response on stream {stream_id}")
                raise ExchangeTimeout(self.timeout, "response") from e

        log_response(
            self.logger,
            response.status,
            response.fields,
            response.body,
            time.time() - start_time,
            level=logging.INFO if self.verbose else logging.DEBUG,
        )
        return response

    async def send_request(
        self,
        connection: H2Connection,
        request: Request,
        stream_id: int = DEFAULT_STREAM_ID,
    ) -> None:
        """Send ``request`` as one HEADERS frame and at most one DATA frame."""
        await connection.ensure_initialized()

        log_request(
            self.logger,
            request.header_fields(),
            request.body,
            stream_id,
            level=logging.INFO if self.verbose else logging.DEBUG,
        )

        block = request.encode_header_block(connection.encoder)
        await connection.framer.write_headers(
            stream_id,
            block,
            end_stream=not request.has_body(),
            end_headers=True,
        )
        self.logger.debug(f">>> HEADERS stream={stream_id} ({len(block)} byte block)")

        if request.body is not None:
            await connection.framer.write_data(stream_id, request.body, end_stream=True)
            self.logger.debug(f">>> DATA stream={stream_id} ({len(request.body)} bytes)")

    def _decode_header_block(
        self, connection: H2Connection, block: bytes
    ) -> List[Tuple[str, str]]:
        try:
            decoded = connection.decoder.decode(block, raw=True)
        except hpack.HPACKError as e:
            self.logger.debug(f"Header block decode failed: {e}")
            raise ProtocolDecodeError(f"Failed to decode header block: {e}") from e
        return [(_text(name), _text(value)) for name, value in decoded]

    async def read_response(self, connection: H2Connection) -> Response:
        """Read frames until the response stream ends or the peer aborts.

        HEADERS (completed by any CONTINUATION frames) and DATA frames build
        the response; END_STREAM on either finishes it. GOAWAY and RST_STREAM
        are fatal. Every other frame is ignored.
        """
        fields: List[Tuple[str, str]] = []
        body = bytearray()
        has_body = False
        pending: Optional[ReceivedHeaders] = None
        pending_block = bytearray()

        while True:
            frame = await connection.read_frame()
            self._log_verbose(f"<<< {describe_frame(frame)}")

            if isinstance(frame, ReceivedHeaders):
                if not frame.end_headers:
                    pending = frame
                    pending_block = bytearray(frame.block)
                    continue
                pending = None
                fields.extend(self._decode_header_block(connection, frame.block))
                if frame.end_stream:
                    break

            elif isinstance(frame, ReceivedContinuation) and pending is not None:
                pending_block += frame.block
                if not frame.end_headers:
                    continue
                end_stream = pending.end_stream
                pending = None
                fields.extend(self._decode_header_block(connection, bytes(pending_block)))
                if end_stream:
                    break

            elif isinstance(frame, ReceivedData):
                body += frame.data
                has_body = True
                if self.max_body_size is not None and len(body) > self.max_body_size:
                    raise ResourceLimitExceeded(self.max_body_size, len(body))
                if frame.end_stream:
                    break

            elif isinstance(frame, ReceivedGoAway):
                raise GoAwayReceived(frame.error_code, frame.last_stream_id, frame.debug_data)

            elif isinstance(frame, ReceivedRstStream):
                raise StreamResetReceived(frame.stream_id, frame.error_code)

            else:
                self._log_verbose(f"Ignoring frame: {describe_frame(frame)}")

        status = next((value for name, value in fields if name == ':status'), "")
        return Response(status, fields, bytes(body) if has_body else None)
