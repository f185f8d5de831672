"""
HTTP/2 transport session.

An H2Connection owns one plain or TLS byte stream to a single endpoint, the
frame codec bound to that stream and the HPACK contexts of the session. It is
responsible for the connection lifecycle and the mandatory preface/SETTINGS
handshake, nothing more: it never sends anything on its own initiative.
"""

import asyncio
import ssl
from typing import Optional

import hpack
from h2.settings import SettingCodes

from h2raw.clients.framing import FrameCodec
from h2raw.errors import ConnectError, ExchangeTimeout
from h2raw.utils import tls
from h2raw.utils.endpoint import Endpoint
from h2raw.utils.logging import format_hex, get_logger

CONNECTION_PREFACE = b"PRI * HTTP/2.0\r\n\r\nSM\r\n\r\n"
"""HTTP/2 client connection preface (RFC 7540, Section 3.5)"""

DEFAULT_MAX_CONCURRENT_STREAMS = 100


class H2Connection:
    """A single HTTP/2 session over an established byte stream.

    ``allow_illegal`` is fixed for the life of the session and applies to
    both directions of the frame codec.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        endpoint: Optional[Endpoint] = None,
        allow_illegal: bool = False,
        read_timeout: Optional[float] = None,
    ) -> None:
        """Wrap an already established stream pair.

        Args:
            reader: Stream reader of the connection
            writer: Stream writer of the connection
            endpoint: Endpoint the streams are connected to, for logging
            allow_illegal: Skip frame conformance checks on reads and writes
            read_timeout: Per-frame read timeout in seconds, None to wait forever
        """
        self.endpoint = endpoint
        self.allow_illegal = allow_illegal
        self.read_timeout = read_timeout
        self.framer = FrameCodec(reader, writer, allow_illegal=allow_illegal)
        self.encoder = hpack.Encoder()
        self.decoder = hpack.Decoder()
        self.preface_sent = False
        self.settings_sent = False
        self.logger = get_logger()
        self._writer: Optional[asyncio.StreamWriter] = writer

    @classmethod
    async def open(
        cls,
        endpoint: Endpoint,
        use_tls: bool = False,
        trust: Optional[tls.TrustConfig] = None,
        allow_illegal: bool = False,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        force_http2: bool = True,
    ) -> "H2Connection":
        """Dial ``endpoint`` and return an uninitialized session.

        Args:
            endpoint: Validated endpoint to connect to
            use_tls: Whether to wrap the connection in TLS
            trust: TLS trust configuration, the insecure preset if None
            allow_illegal: Skip frame conformance checks for this session
            connect_timeout: Timeout for dialing and the TLS handshake
            read_timeout: Per-frame read timeout for the session
            force_http2: Keep the session even if ALPN did not select h2

        Raises:
            ConnectError: If dialing or the TLS handshake fails
        """
        logger = get_logger()
        logger.debug(f"Connecting to {endpoint} (TLS: {use_tls})")

        ssl_context = None
        server_hostname = None
        if use_tls:
            trust = trust or tls.TrustConfig.insecure()
            ssl_context = tls.create_ssl_context(trust)
            server_hostname = trust.server_hostname or endpoint.host

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    host=endpoint.host,
                    port=endpoint.port,
                    ssl=ssl_context,
                    server_hostname=server_hostname,
                ),
                timeout=connect_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Connection to {endpoint} timed out")
            raise ConnectError(
                endpoint.host, endpoint.port, f"timed out after {connect_timeout} seconds"
            ) from e
        except (OSError, ssl.SSLError) as e:
            logger.error(f"Connection error: {e}")
            raise ConnectError(endpoint.host, endpoint.port, str(e)) from e

        connection = cls(
            reader,
            writer,
            endpoint=endpoint,
            allow_illegal=allow_illegal,
            read_timeout=read_timeout,
        )

        if use_tls:
            protocol = tls.get_negotiated_protocol(writer.get_extra_info('ssl_object'))
            logger.debug(f"Negotiated ALPN protocol: {protocol}")
            if protocol != 'h2':
                if not force_http2:
                    await connection.close()
                    raise ConnectError(
                        endpoint.host,
                        endpoint.port,
                        f"server does not support HTTP/2 (negotiated: {protocol})",
                    )
                logger.warning(
                    f"Server did not select h2 via ALPN (negotiated: {protocol}), continuing anyway"
                )

        logger.debug("Connection established successfully")
        return connection

    @property
    def is_initialized(self) -> bool:
        return self.preface_sent and self.settings_sent

    @property
    def is_closed(self) -> bool:
        return self._writer is None

    async def initialize(self, max_concurrent_streams: int = DEFAULT_MAX_CONCURRENT_STREAMS) -> None:
        """Send the connection preface followed by one SETTINGS frame.

        Raises:
            TransportIOError: If either write fails
        """
        await self.framer.write_raw(CONNECTION_PREFACE)
        self.preface_sent = True
        self.logger.debug(">>> HTTP/2 preface")

        settings = {SettingCodes.MAX_CONCURRENT_STREAMS: max_concurrent_streams}
        await self.framer.write_settings(settings)
        self.settings_sent = True
        self.logger.debug(f">>> SETTINGS (MAX_CONCURRENT_STREAMS={max_concurrent_streams})")

    async def ensure_initialized(self) -> None:
        """Run the handshake unless it already happened. Idempotent."""
        if not self.is_initialized:
            await self.initialize()

    async def send_raw(self, data: bytes) -> None:
        """Send raw bytes over the connection, bypassing the frame codec.

        Args:
            data: Raw bytes to send
        """
        self.logger.debug(f"Sending {len(data)} raw bytes: {format_hex(data)}")
        await self.framer.write_raw(data)

    async def read_frame(self):
        """Read the next frame, honouring the session read timeout."""
        if self.read_timeout is None:
            return await self.framer.read_frame()
        try:
            return await asyncio.wait_for(self.framer.read_frame(), timeout=self.read_timeout)
        except asyncio.TimeoutError as e:
            raise ExchangeTimeout(self.read_timeout, "frame read") from e

    async def close(self) -> None:
        """Close the underlying connection. Safe to call more than once."""
        writer = self._writer
        if writer is None:
            return
        self._writer = None

        self.logger.debug(f"Closing connection to {self.endpoint}")
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            # The peer may already have dropped the connection.
            self.logger.debug(f"Error closing connection: {e}")

    async def __aenter__(self) -> "H2Connection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
