"""
TLS utilities for h2raw connections.

This module provides the trust configuration accepted by the encrypted
transport and the helper that turns it into an SSL context. The defaults are
intentionally permissive: h2raw is a testing tool, not a production client.
"""

import ssl
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TrustConfig:
    """Caller supplied TLS settings for the encrypted transport.

    Attributes:
        verify: Whether to verify the server certificate and hostname
        minimum_version: Lowest TLS version to offer (library default if None)
        maximum_version: Highest TLS version to offer (library default if None)
        alpn_protocols: ALPN protocols to advertise, must offer "h2"
        server_hostname: SNI name to send instead of the endpoint host
    """

    verify: bool = False
    minimum_version: Optional[ssl.TLSVersion] = None
    maximum_version: Optional[ssl.TLSVersion] = None
    alpn_protocols: List[str] = field(default_factory=lambda: ["h2"])
    server_hostname: Optional[str] = None

    @classmethod
    def insecure(cls) -> "TrustConfig":
        """Skip certificate verification and offer only h2 up to TLS 1.3."""
        return cls(
            verify=False,
            maximum_version=ssl.TLSVersion.TLSv1_3,
            alpn_protocols=["h2"],
        )


def create_ssl_context(trust: Optional[TrustConfig] = None) -> ssl.SSLContext:
    """Create an SSL context for HTTP/2 connections.

    Args:
        trust: Trust configuration, the insecure preset if None

    Returns:
        Configured SSL context
    """
    trust = trust or TrustConfig.insecure()

    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)

    # Configure certificate verification
    if not trust.verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    if trust.minimum_version is not None:
        context.minimum_version = trust.minimum_version
    if trust.maximum_version is not None:
        context.maximum_version = trust.maximum_version

    if trust.alpn_protocols:
        context.set_alpn_protocols(trust.alpn_protocols)

    return context


def get_negotiated_protocol(ssl_object: Optional[ssl.SSLObject]) -> Optional[str]:
    """Get the negotiated ALPN protocol from an SSL object.

    Args:
        ssl_object: SSL object from an established connection

    Returns:
        Negotiated protocol or None if not available
    """
    if ssl_object is None:
        return None
    try:
        return ssl_object.selected_alpn_protocol()
    except AttributeError:
        return None
