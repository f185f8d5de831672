"""
HTTP/2 frame codec for h2raw connections.

Frames are built and parsed with hyperframe. A codec created with
``allow_illegal=True`` skips every conformance check in both directions:
outbound frames are packed byte for byte exactly as requested, and inbound
frames that hyperframe refuses to parse are decoded leniently instead of
failing the read.
"""

import asyncio
import struct
from dataclasses import dataclass
from typing import Dict, Iterable, Union

from hyperframe.exceptions import HyperframeError
from hyperframe.frame import (
    ContinuationFrame,
    DataFrame,
    Frame,
    GoAwayFrame,
    HeadersFrame,
    RstStreamFrame,
    SettingsFrame,
)

from h2raw.errors import IllegalFrameError, ProtocolDecodeError, TransportIOError

FRAME_HEADER_LENGTH = 9
MAX_FRAME_PAYLOAD = 2**24 - 1
MAX_STREAM_ID = 2**31 - 1
DEFAULT_MAX_FRAME_SIZE = 2**14

TYPE_DATA = 0x0
TYPE_HEADERS = 0x1
TYPE_RST_STREAM = 0x3
TYPE_SETTINGS = 0x4
TYPE_GOAWAY = 0x7
TYPE_CONTINUATION = 0x9

FLAG_END_STREAM = 0x1
FLAG_END_HEADERS = 0x4
FLAG_PADDED = 0x8
FLAG_PRIORITY = 0x20

_PRIORITY_FIELDS_LENGTH = 5


@dataclass(frozen=True)
class ReceivedHeaders:
    stream_id: int
    block: bytes
    end_stream: bool
    end_headers: bool


@dataclass(frozen=True)
class ReceivedContinuation:
    stream_id: int
    block: bytes
    end_headers: bool


@dataclass(frozen=True)
class ReceivedData:
    stream_id: int
    data: bytes
    end_stream: bool


@dataclass(frozen=True)
class ReceivedGoAway:
    last_stream_id: int
    error_code: int
    debug_data: bytes


@dataclass(frozen=True)
class ReceivedRstStream:
    stream_id: int
    error_code: int


@dataclass(frozen=True)
class ReceivedOther:
    """Any frame the exchange does not act on (SETTINGS, PING, WINDOW_UPDATE...)."""

    frame_type: int
    flags: int
    stream_id: int
    payload: bytes


ReceivedFrame = Union[
    ReceivedHeaders,
    ReceivedContinuation,
    ReceivedData,
    ReceivedGoAway,
    ReceivedRstStream,
    ReceivedOther,
]


def pack_frame(frame_type: int, flags: int, stream_id: int, payload: bytes) -> bytes:
    """Pack a frame without any validation beyond what the wire format can hold.

    The stream identifier is written as a full 32-bit value, so the reserved
    bit can be set on purpose.
    """
    if len(payload) > MAX_FRAME_PAYLOAD:
        raise IllegalFrameError(
            f"Frame payload of {len(payload)} bytes does not fit the 24-bit length field"
        )
    header = struct.pack("!I", len(payload))[1:]
    header += struct.pack("!BBI", frame_type & 0xFF, flags & 0xFF, stream_id & 0xFFFFFFFF)
    return header + payload


def _check_stream_id(stream_id: int) -> None:
    if not 0 < stream_id <= MAX_STREAM_ID:
        raise IllegalFrameError(f"Invalid stream ID {stream_id} for a stream frame")


def _serialize(frame: Frame) -> bytes:
    wire = frame.serialize()
    if len(wire) - FRAME_HEADER_LENGTH > MAX_FRAME_PAYLOAD:
        raise IllegalFrameError(
            f"{type(frame).__name__} payload exceeds {MAX_FRAME_PAYLOAD} bytes"
        )
    return wire


def build_headers_frame(
    stream_id: int,
    block: bytes,
    end_stream: bool,
    end_headers: bool = True,
    allow_illegal: bool = False,
) -> bytes:
    """Build a HEADERS frame carrying an already encoded header block."""
    if allow_illegal:
        flags = (FLAG_END_STREAM if end_stream else 0) | (FLAG_END_HEADERS if end_headers else 0)
        return pack_frame(TYPE_HEADERS, flags, stream_id, block)

    _check_stream_id(stream_id)
    names = []
    if end_stream:
        names.append('END_STREAM')
    if end_headers:
        names.append('END_HEADERS')
    try:
        return _serialize(HeadersFrame(stream_id, data=block, flags=names))
    except HyperframeError as e:
        raise IllegalFrameError(f"Refusing to build HEADERS frame: {e}") from e


def build_data_frame(
    stream_id: int,
    data: bytes,
    end_stream: bool,
    allow_illegal: bool = False,
) -> bytes:
    """Build a single DATA frame with the whole payload."""
    if allow_illegal:
        return pack_frame(TYPE_DATA, FLAG_END_STREAM if end_stream else 0, stream_id, data)

    _check_stream_id(stream_id)
    try:
        return _serialize(
            DataFrame(stream_id, data=data, flags=['END_STREAM'] if end_stream else [])
        )
    except HyperframeError as e:
        raise IllegalFrameError(f"Refusing to build DATA frame: {e}") from e


def build_settings_frame(settings: Dict[int, int], allow_illegal: bool = False) -> bytes:
    """Build a SETTINGS frame on stream 0."""
    if allow_illegal:
        payload = b"".join(
            struct.pack("!HI", int(ident) & 0xFFFF, value & 0xFFFFFFFF)
            for ident, value in settings.items()
        )
        return pack_frame(TYPE_SETTINGS, 0, 0, payload)

    try:
        return _serialize(SettingsFrame(0, settings=dict(settings)))
    except (HyperframeError, struct.error) as e:
        raise IllegalFrameError(f"Refusing to build SETTINGS frame: {e}") from e


def _strip_padding(payload: bytes, flags: int) -> bytes:
    if not flags & FLAG_PADDED or not payload:
        return payload
    pad_length = payload[0]
    body = payload[1:]
    if pad_length > len(body):
        return body
    return body[:len(body) - pad_length]


def decode_lenient(frame_type: int, flags: int, stream_id: int, payload: bytes) -> ReceivedFrame:
    """Decode a frame that failed strict parsing as well as its bytes allow."""
    if frame_type == TYPE_DATA:
        return ReceivedData(stream_id, _strip_padding(payload, flags), bool(flags & FLAG_END_STREAM))

    if frame_type == TYPE_HEADERS:
        block = _strip_padding(payload, flags)
        if flags & FLAG_PRIORITY and len(block) >= _PRIORITY_FIELDS_LENGTH:
            block = block[_PRIORITY_FIELDS_LENGTH:]
        return ReceivedHeaders(
            stream_id,
            block,
            bool(flags & FLAG_END_STREAM),
            bool(flags & FLAG_END_HEADERS),
        )

    if frame_type == TYPE_CONTINUATION:
        return ReceivedContinuation(stream_id, payload, bool(flags & FLAG_END_HEADERS))

    if frame_type == TYPE_GOAWAY:
        fixed = payload[:8].ljust(8, b"\x00")
        last_stream_id, error_code = struct.unpack("!II", fixed)
        return ReceivedGoAway(last_stream_id & MAX_STREAM_ID, error_code, payload[8:])

    if frame_type == TYPE_RST_STREAM:
        (error_code,) = struct.unpack("!I", payload[:4].ljust(4, b"\x00"))
        return ReceivedRstStream(stream_id, error_code)

    return ReceivedOther(frame_type, flags, stream_id, payload)


def _from_hyperframe(frame: Frame, flags: int, payload: bytes) -> ReceivedFrame:
    if isinstance(frame, HeadersFrame):
        return ReceivedHeaders(
            frame.stream_id,
            bytes(frame.data),
            'END_STREAM' in frame.flags,
            'END_HEADERS' in frame.flags,
        )
    if isinstance(frame, ContinuationFrame):
        return ReceivedContinuation(
            frame.stream_id, bytes(frame.data), 'END_HEADERS' in frame.flags
        )
    if isinstance(frame, DataFrame):
        return ReceivedData(frame.stream_id, bytes(frame.data), 'END_STREAM' in frame.flags)
    if isinstance(frame, GoAwayFrame):
        return ReceivedGoAway(
            frame.last_stream_id, frame.error_code, bytes(frame.additional_data)
        )
    if isinstance(frame, RstStreamFrame):
        return ReceivedRstStream(frame.stream_id, frame.error_code)
    return ReceivedOther(frame.type, flags, frame.stream_id, payload)


def decode_frame(header: bytes, payload: bytes, allow_illegal: bool = False) -> ReceivedFrame:
    """Decode one complete frame (9-byte header plus payload).

    Raises:
        ProtocolDecodeError: If strict parsing fails and illegal frames are
            not allowed
    """
    frame_type = header[3]
    flags = header[4]
    stream_id = struct.unpack("!I", header[5:9])[0] & MAX_STREAM_ID

    try:
        frame, _ = Frame.parse_frame_header(memoryview(header))
        frame.parse_body(memoryview(payload))
    except HyperframeError as e:
        if not allow_illegal:
            raise ProtocolDecodeError(f"Invalid frame of type {frame_type:#x}: {e}") from e
        return decode_lenient(frame_type, flags, stream_id, payload)

    return _from_hyperframe(frame, flags, payload)


class FrameCodec:
    """Frame reader/writer bound to one asyncio stream pair.

    Every write is flushed before the call returns.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        allow_illegal: bool = False,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self.allow_illegal = allow_illegal
        self.max_frame_size = max_frame_size

    async def write_raw(self, data: bytes) -> None:
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise TransportIOError(f"Error sending data: {e}") from e

    async def write_settings(self, settings: Dict[int, int]) -> None:
        await self.write_raw(build_settings_frame(settings, self.allow_illegal))

    async def write_headers(
        self,
        stream_id: int,
        block: bytes,
        end_stream: bool,
        end_headers: bool = True,
    ) -> None:
        await self.write_raw(
            build_headers_frame(stream_id, block, end_stream, end_headers, self.allow_illegal)
        )

    async def write_data(self, stream_id: int, data: bytes, end_stream: bool) -> None:
        await self.write_raw(build_data_frame(stream_id, data, end_stream, self.allow_illegal))

    async def _read_exactly(self, count: int) -> bytes:
        try:
            return await self._reader.readexactly(count)
        except asyncio.IncompleteReadError as e:
            raise TransportIOError(
                f"Connection closed after {len(e.partial)} of {count} bytes"
            ) from e
        except OSError as e:
            raise TransportIOError(f"Error receiving data: {e}") from e

    async def read_frame(self) -> ReceivedFrame:
        """Read the next frame, blocking until it is complete."""
        header = await self._read_exactly(FRAME_HEADER_LENGTH)
        length = int.from_bytes(header[:3], "big")
        if not self.allow_illegal and length > self.max_frame_size:
            raise ProtocolDecodeError(
                f"Frame of {length} bytes exceeds the maximum frame size {self.max_frame_size}"
            )
        payload = await self._read_exactly(length)
        return decode_frame(header, payload, self.allow_illegal)


def iter_frames(data: bytes, allow_illegal: bool = True) -> Iterable[ReceivedFrame]:
    """Decode every complete frame in a byte string, e.g. a captured request."""
    offset = 0
    while offset + FRAME_HEADER_LENGTH <= len(data):
        header = data[offset:offset + FRAME_HEADER_LENGTH]
        length = int.from_bytes(header[:3], "big")
        start = offset + FRAME_HEADER_LENGTH
        if start + length > len(data):
            break
        yield decode_frame(header, data[start:start + length], allow_illegal)
        offset = start + length
