"""
Endpoint parsing for h2raw connections.

Endpoints are given as ``host:port`` strings. IPv6 literals must be bracketed
(``[::1]:8443``). The result is validated once and never changes afterwards.
"""

import re
from dataclasses import dataclass

from h2raw.errors import ConfigError

_PORT_RE = re.compile(r"[0-9]+")
_MAX_PORT = 65535


@dataclass(frozen=True)
class Endpoint:
    """A validated host and numeric port."""

    host: str
    port: int

    @property
    def address(self) -> str:
        """Normalized ``host:port`` form, bracketing IPv6 hosts."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.address


def split_host_port(text: str) -> tuple[str, str]:
    """Split ``text`` into host and port strings.

    Args:
        text: Endpoint string such as ``example.com:443`` or ``[::1]:80``

    Returns:
        Tuple of (host, port) strings

    Raises:
        ConfigError: If the string cannot be split
    """
    host, sep, port = text.rpartition(":")
    if not sep:
        raise ConfigError(f"Missing port in endpoint {text!r}")

    if host.startswith("["):
        if not host.endswith("]"):
            raise ConfigError(f"Missing ']' in endpoint {text!r}")
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError(f"Too many colons in endpoint {text!r}")
    elif "[" in host or "]" in host:
        raise ConfigError(f"Unexpected bracket in endpoint {text!r}")

    return host, port


def validate_endpoint(text: str) -> Endpoint:
    """Validate and normalize an endpoint string.

    Args:
        text: Endpoint string in ``host:port`` form

    Returns:
        The validated endpoint

    Raises:
        ConfigError: If the host and port cannot be split or the port is
            not a number in the 0-65535 range
    """
    host, port_str = split_host_port(text)

    if not _PORT_RE.fullmatch(port_str):
        raise ConfigError(f"Invalid port {port_str!r} in endpoint {text!r}")

    port = int(port_str)
    if port > _MAX_PORT:
        raise ConfigError(f"Port {port} out of range in endpoint {text!r}")

    return Endpoint(host=host, port=port)
