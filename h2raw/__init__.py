"""
h2raw: a deliberately non-conformant HTTP/2 client for protocol testing.
"""

from h2raw.clients.connection import H2Connection
from h2raw.clients.http2 import HTTP2Client
from h2raw.clients.request import Request
from h2raw.clients.response import Response
from h2raw.errors import (
    ConfigError,
    ConnectError,
    ExchangeTimeout,
    GoAwayReceived,
    H2RawError,
    IllegalFrameError,
    ProtocolDecodeError,
    RemoteTermination,
    ResourceLimitExceeded,
    StreamResetReceived,
    TransportIOError,
)
from h2raw.utils.endpoint import Endpoint, validate_endpoint
from h2raw.utils.tls import TrustConfig

__version__ = "0.1.0"

__all__ = [
    'ConfigError',
    'ConnectError',
    'Endpoint',
    'ExchangeTimeout',
    'GoAwayReceived',
    'H2Connection',
    'H2RawError',
    'HTTP2Client',
    'IllegalFrameError',
    'ProtocolDecodeError',
    'RemoteTermination',
    'Request',
    'ResourceLimitExceeded',
    'Response',
    'StreamResetReceived',
    'TransportIOError',
    'TrustConfig',
    'validate_endpoint',
]
