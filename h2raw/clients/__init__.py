"""
HTTP/2 client implementation for h2raw.

This package contains the transport session, the request and response
models and the exchange engine that sends non-RFC-compliant requests.
"""
