"""
Mutable HTTP/2 request representation.

Nothing here is validated or normalized. Illegal methods, mixed-case header
names, bodies on GET and content-length values that disagree with the body
are all sent exactly as given.
"""

from typing import Dict, Iterable, List, Optional, Tuple

import hpack

from h2raw.clients.framing import build_data_frame, build_headers_frame


class Request:
    """An HTTP/2 request as the caller wants it to appear on the wire.

    Header fields are kept as one ordered list of (name, value) pairs, so the
    relative order of different names survives encoding. ``headers`` gives
    the name to values view of the same list.
    """

    def __init__(
        self,
        method: str,
        scheme: str,
        authority: str,
        path: str,
        body: Optional[bytes] = None,
    ) -> None:
        self.method = method
        self.scheme = scheme
        self.authority = authority
        self.path = path
        self.body = body
        self._fields: List[Tuple[str, str]] = []

    def __repr__(self) -> str:
        return (
            f"Request(method={self.method!r}, scheme={self.scheme!r}, "
            f"authority={self.authority!r}, path={self.path!r}, "
            f"headers={len(self._fields)}, body_length={self.body_length()})"
        )

    @property
    def headers(self) -> Dict[str, List[str]]:
        """Name to ordered values mapping, in first-seen name order."""
        result: Dict[str, List[str]] = {}
        for name, value in self._fields:
            result.setdefault(name, []).append(value)
        return result

    def set_header(self, name: str, values: Iterable[str]) -> None:
        """Replace every value of ``name``.

        The new values take the place of the first existing occurrence, or
        are appended when the name is new.
        """
        new_fields = [(name, value) for value in values]
        index = next(
            (i for i, (existing, _) in enumerate(self._fields) if existing == name),
            len(self._fields),
        )
        kept = [field for field in self._fields if field[0] != name]
        position = sum(1 for existing, _ in self._fields[:index] if existing != name)
        self._fields = kept[:position] + new_fields + kept[position:]

    def add_header(self, name: str, value: str) -> None:
        """Append one value to ``name``."""
        self._fields.append((name, value))

    def has_body(self) -> bool:
        return self.body is not None

    def body_length(self) -> int:
        if self.body is None:
            return -1
        return len(self.body)

    def pseudo_header_fields(self) -> List[Tuple[str, str]]:
        return [
            (':method', self.method),
            (':scheme', self.scheme),
            (':authority', self.authority),
            (':path', self.path),
        ]

    def header_fields(self) -> List[Tuple[str, str]]:
        """All fields in wire order: pseudo-headers first, then regular headers."""
        return self.pseudo_header_fields() + list(self._fields)

    def encode_header_block(self, encoder: Optional[hpack.Encoder] = None) -> bytes:
        """HPACK-encode the header fields one by one into a single block.

        Args:
            encoder: Encoder carrying the session's compression state, a fresh
                one when None
        """
        encoder = encoder or hpack.Encoder()
        return b"".join(encoder.encode([field]) for field in self.header_fields())

    def serialize(self, stream_id: int, allow_illegal: bool = True) -> bytes:
        """Return the frames this request is sent as, without any connection.

        One HEADERS frame with END_HEADERS (END_STREAM when there is no body),
        followed by one DATA frame with END_STREAM carrying the whole body.
        """
        wire = build_headers_frame(
            stream_id,
            self.encode_header_block(),
            end_stream=not self.has_body(),
            end_headers=True,
            allow_illegal=allow_illegal,
        )
        if self.body is not None:
            wire += build_data_frame(stream_id, self.body, end_stream=True, allow_illegal=allow_illegal)
        return wire
