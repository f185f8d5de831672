import dataclasses

import pytest

from h2raw.errors import ConfigError
from h2raw.utils.endpoint import Endpoint, split_host_port, validate_endpoint


def test_validate_host_and_port() -> None:
    endpoint = validate_endpoint("example.com:443")

    assert endpoint == Endpoint("example.com", 443)
    assert endpoint.address == "example.com:443"
    assert str(endpoint) == "example.com:443"


def test_port_is_normalized() -> None:
    assert validate_endpoint("127.0.0.1:0080").address == "127.0.0.1:80"


def test_bracketed_ipv6() -> None:
    endpoint = validate_endpoint("[::1]:8443")

    assert endpoint.host == "::1"
    assert endpoint.port == 8443
    assert endpoint.address == "[::1]:8443"


def test_empty_host_is_accepted() -> None:
    assert split_host_port(":8000") == ("", "8000")
    assert validate_endpoint(":8000") == Endpoint("", 8000)


@pytest.mark.parametrize(
    "text",
    [
        "example.com",
        "example.com:",
        "example.com:https",
        "example.com: 443",
        "example.com:-1",
        "example.com:70000",
        "example.com:443\n",
        "example.com:\n443",
        "::1:443",
        "[::1:443",
        "exa]mple.com:443",
    ],
)
def test_invalid_endpoints(text: str) -> None:
    with pytest.raises(ConfigError):
        validate_endpoint(text)


def test_endpoint_is_immutable() -> None:
    endpoint = validate_endpoint("example.com:443")

    with pytest.raises(dataclasses.FrozenInstanceError):
        endpoint.port = 80
