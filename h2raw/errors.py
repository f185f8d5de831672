"""
Exceptions raised by the h2raw client.

Every failure surfaces to the caller of the operation that detected it. The
client never retries and never hands back a partially assembled response.
"""

from typing import Optional

from h2.errors import ErrorCodes


def describe_error_code(code: int) -> str:
    """Map a wire error code to its registered name where one exists."""
    try:
        return ErrorCodes(code).name
    except ValueError:
        return hex(code)


class H2RawError(Exception):
    """Base class for all errors raised by h2raw."""


class ConfigError(H2RawError):
    """Invalid caller supplied configuration, e.g. an endpoint string."""


class ConnectError(H2RawError):
    """Dialing the endpoint or completing the TLS handshake failed."""

    def __init__(self, host: str, port: int, reason: str) -> None:
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Failed to connect to {host}:{port}: {reason}")


class TransportIOError(H2RawError):
    """A read or write on an established connection failed.

    The session should be considered unusable and closed by the caller.
    """


class IllegalFrameError(H2RawError):
    """A strict frame codec refused to build an outbound frame."""


class ProtocolDecodeError(H2RawError):
    """Inbound data could not be decoded (header block or strict frame checks)."""


class RemoteTermination(H2RawError):
    """The peer actively ended the exchange before it completed."""


class GoAwayReceived(RemoteTermination):
    """The peer sent GOAWAY and is closing the connection."""

    def __init__(
        self,
        error_code: int,
        last_stream_id: int,
        debug_data: bytes = b"",
    ) -> None:
        self.error_code = error_code
        self.last_stream_id = last_stream_id
        self.debug_data = debug_data
        message = (
            f"Received GOAWAY (error={describe_error_code(error_code)}, "
            f"last_stream_id={last_stream_id})"
        )
        if debug_data:
            message += f": {debug_data!r}"
        super().__init__(message)


class StreamResetReceived(RemoteTermination):
    """The peer sent RST_STREAM."""

    def __init__(self, stream_id: int, error_code: int) -> None:
        self.stream_id = stream_id
        self.error_code = error_code
        super().__init__(
            f"Received RST_STREAM on stream {stream_id} "
            f"(error={describe_error_code(error_code)})"
        )


class ExchangeTimeout(H2RawError):
    """A configured deadline expired while waiting on the peer."""

    def __init__(self, timeout: float, operation: Optional[str] = None) -> None:
        self.timeout = timeout
        self.operation = operation
        what = f" during {operation}" if operation else ""
        super().__init__(f"Timed out after {timeout} seconds{what}")


class ResourceLimitExceeded(H2RawError):
    """The response outgrew a configured limit."""

    def __init__(self, limit: int, received: int) -> None:
        self.limit = limit
        self.received = received
        super().__init__(
            f"Response body of {received} bytes exceeds the limit of {limit} bytes"
        )
