import asyncio
from typing import Iterable, List, Optional, Tuple

import pytest
from hpack import Decoder, Encoder
from hyperframe.frame import (
    ContinuationFrame,
    DataFrame,
    GoAwayFrame,
    HeadersFrame,
    PingFrame,
    RstStreamFrame,
    SettingsFrame,
    WindowUpdateFrame,
)

from h2raw.clients.connection import CONNECTION_PREFACE, H2Connection
from h2raw.clients.framing import (
    ReceivedData,
    ReceivedFrame,
    ReceivedHeaders,
    TYPE_SETTINGS,
    iter_frames,
    pack_frame,
)


class FakeWriter:
    """In-memory stand-in for asyncio.StreamWriter that records every write."""

    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closed = False
        self.fail_writes = False

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise ConnectionResetError("connection reset by peer")
        self.buffer += data

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass

    def get_extra_info(self, name, default=None):
        return default

    def frames(self) -> List[ReceivedFrame]:
        """Frames written after the preface, decoded without validation."""
        data = bytes(self.buffer)
        assert data.startswith(CONNECTION_PREFACE)
        return list(iter_frames(data[len(CONNECTION_PREFACE):]))

    def request_frames(self) -> List[ReceivedFrame]:
        """Written frames minus the handshake SETTINGS."""
        return [
            frame for frame in self.frames()
            if getattr(frame, 'frame_type', None) != TYPE_SETTINGS
        ]

    def headers_frames(self) -> List[ReceivedHeaders]:
        return [frame for frame in self.request_frames() if isinstance(frame, ReceivedHeaders)]

    def data_frames(self) -> List[ReceivedData]:
        return [frame for frame in self.request_frames() if isinstance(frame, ReceivedData)]

    def header_blocks(self) -> List[List[Tuple[str, str]]]:
        """Decode every written header block in order with one HPACK context."""
        decoder = Decoder()
        return [
            [tuple(field) for field in decoder.decode(frame.block)]
            for frame in self.headers_frames()
        ]


class ServerFrames:
    """Builds the byte stream a server would send, sharing one HPACK context."""

    def __init__(self) -> None:
        self.encoder = Encoder()

    def headers(
        self,
        fields: Iterable[Tuple[str, str]],
        stream_id: int = 1,
        end_stream: bool = False,
        end_headers: bool = True,
    ) -> bytes:
        flags = []
        if end_stream:
            flags.append('END_STREAM')
        if end_headers:
            flags.append('END_HEADERS')
        return HeadersFrame(stream_id, data=self.encoder.encode(list(fields)), flags=flags).serialize()

    def continuation(self, block: bytes, stream_id: int = 1, end_headers: bool = True) -> bytes:
        flags = ['END_HEADERS'] if end_headers else []
        return ContinuationFrame(stream_id, data=block, flags=flags).serialize()

    def data(self, payload: bytes, stream_id: int = 1, end_stream: bool = False) -> bytes:
        flags = ['END_STREAM'] if end_stream else []
        return DataFrame(stream_id, data=payload, flags=flags).serialize()

    def rst_stream(self, error_code: int, stream_id: int = 1) -> bytes:
        return RstStreamFrame(stream_id, error_code=error_code).serialize()

    def goaway(self, error_code: int, last_stream_id: int = 0, debug: bytes = b"") -> bytes:
        return GoAwayFrame(
            0, last_stream_id=last_stream_id, error_code=error_code, additional_data=debug
        ).serialize()

    def settings(self, ack: bool = False) -> bytes:
        return SettingsFrame(0, flags=['ACK'] if ack else []).serialize()

    def ping(self) -> bytes:
        return PingFrame(0, opaque_data=b"12345678").serialize()

    def window_update(self, increment: int = 1024, stream_id: int = 0) -> bytes:
        return WindowUpdateFrame(stream_id, window_increment=increment).serialize()

    def raw(self, frame_type: int, flags: int, stream_id: int, payload: bytes) -> bytes:
        return pack_frame(frame_type, flags, stream_id, payload)


@pytest.fixture
def server() -> ServerFrames:
    return ServerFrames()


@pytest.fixture
def make_connection():
    """Factory for sessions over an in-memory reader and a FakeWriter.

    Must be called from inside a running event loop.
    """

    def factory(
        incoming: bytes = b"",
        allow_illegal: bool = False,
        eof: bool = True,
        read_timeout: Optional[float] = None,
    ) -> Tuple[H2Connection, FakeWriter]:
        reader = asyncio.StreamReader()
        if incoming:
            reader.feed_data(incoming)
        if eof:
            reader.feed_eof()
        writer = FakeWriter()
        connection = H2Connection(
            reader, writer, allow_illegal=allow_illegal, read_timeout=read_timeout
        )
        return connection, writer

    return factory
