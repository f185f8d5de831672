import pytest
from hpack import Decoder, Encoder

from h2raw.clients.framing import ReceivedData, ReceivedHeaders, iter_frames
from h2raw.clients.request import Request
from h2raw.errors import IllegalFrameError

PSEUDO = [
    (":method", "GET"),
    (":scheme", "https"),
    (":authority", "example.com"),
    (":path", "/x"),
]


def make_request(**kwargs) -> Request:
    return Request("GET", "https", "example.com", "/x", **kwargs)


def test_any_method_is_accepted() -> None:
    req = Request("JUNK method 1234", "h t t p", "", "no-leading-slash")

    assert req.method == "JUNK method 1234"
    assert req.pseudo_header_fields() == [
        (":method", "JUNK method 1234"),
        (":scheme", "h t t p"),
        (":authority", ""),
        (":path", "no-leading-slash"),
    ]


def test_add_header_keeps_duplicates_and_order() -> None:
    req = make_request()
    req.add_header("a", "1")
    req.add_header("b", "2")
    req.add_header("a", "3")

    assert req.headers == {"a": ["1", "3"], "b": ["2"]}
    assert req.header_fields() == PSEUDO + [("a", "1"), ("b", "2"), ("a", "3")]


def test_set_header_replaces_in_place() -> None:
    req = make_request()
    req.add_header("a", "1")
    req.add_header("b", "2")
    req.add_header("a", "3")
    req.add_header("c", "4")

    req.set_header("a", ["x", "y"])

    assert req.header_fields()[4:] == [("a", "x"), ("a", "y"), ("b", "2"), ("c", "4")]


def test_set_header_appends_new_name() -> None:
    req = make_request()
    req.add_header("a", "1")

    req.set_header("content-length", ["999"])

    assert req.header_fields()[4:] == [("a", "1"), ("content-length", "999")]


def test_set_header_with_no_values_removes_name() -> None:
    req = make_request()
    req.add_header("a", "1")
    req.add_header("b", "2")

    req.set_header("a", [])

    assert req.headers == {"b": ["2"]}


def test_header_names_are_not_case_normalized() -> None:
    req = make_request()
    req.add_header("X-Mixed-Case", "upper")
    req.add_header("x-mixed-case", "lower")

    assert req.headers == {"X-Mixed-Case": ["upper"], "x-mixed-case": ["lower"]}


def test_body_accessors() -> None:
    assert not make_request().has_body()
    assert make_request().body_length() == -1

    empty = make_request(body=b"")
    assert empty.has_body()
    assert empty.body_length() == 0

    assert make_request(body=b"hi").body_length() == 2


def test_header_block_round_trip_preserves_order_and_case() -> None:
    req = make_request()
    req.add_header("a", "1")
    req.add_header("b", "2")
    req.add_header("a", "3")
    req.add_header("X-Test", "upper")
    req.add_header("x-test", "lower")

    decoded = Decoder().decode(req.encode_header_block())

    assert [tuple(field) for field in decoded] == PSEUDO + [
        ("a", "1"),
        ("b", "2"),
        ("a", "3"),
        ("X-Test", "upper"),
        ("x-test", "lower"),
    ]


def test_header_block_uses_given_encoder_state() -> None:
    encoder = Encoder()
    decoder = Decoder()
    req = make_request()
    req.add_header("x-repeat", "value")

    first = req.encode_header_block(encoder)
    second = req.encode_header_block(encoder)

    assert len(second) < len(first)
    assert decoder.decode(first) == decoder.decode(second)


def test_serialize_without_body() -> None:
    frames = list(iter_frames(make_request().serialize(1)))

    assert len(frames) == 1
    headers = frames[0]
    assert isinstance(headers, ReceivedHeaders)
    assert headers.stream_id == 1
    assert headers.end_stream
    assert headers.end_headers


def test_serialize_with_body_ignores_content_length() -> None:
    req = make_request(body=b"hi")
    req.add_header("content-length", "999")

    frames = list(iter_frames(req.serialize(3)))

    assert len(frames) == 2
    headers, data = frames
    assert isinstance(headers, ReceivedHeaders)
    assert not headers.end_stream
    assert ("content-length", "999") in [tuple(f) for f in Decoder().decode(headers.block)]
    assert isinstance(data, ReceivedData)
    assert data == ReceivedData(stream_id=3, data=b"hi", end_stream=True)


def test_serialize_empty_body_sends_empty_data_frame() -> None:
    frames = list(iter_frames(make_request(body=b"").serialize(1)))

    assert frames[0].end_stream is False
    assert frames[1] == ReceivedData(stream_id=1, data=b"", end_stream=True)


def test_serialize_strict_rejects_stream_zero() -> None:
    with pytest.raises(IllegalFrameError):
        make_request().serialize(0, allow_illegal=False)


def test_serialize_allows_stream_zero_by_default() -> None:
    frames = list(iter_frames(make_request(body=b"x").serialize(0)))

    assert [frame.stream_id for frame in frames] == [0, 0]
