"""
Read-only HTTP/2 response.
"""

from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple


class Response:
    """The outcome of one completed exchange.

    Headers keep the casing they were received with and include the
    pseudo-headers. ``body`` is None when no DATA frame arrived, which is
    different from an empty body.
    """

    __slots__ = ('_status', '_fields', '_headers', '_body')

    def __init__(
        self,
        status: str,
        fields: Iterable[Tuple[str, str]],
        body: Optional[bytes] = None,
    ) -> None:
        self._status = status
        self._fields = tuple(fields)
        headers = {}
        for name, value in self._fields:
            headers.setdefault(name, []).append(value)
        self._headers = MappingProxyType(
            {name: tuple(values) for name, values in headers.items()}
        )
        self._body = None if body is None else bytes(body)

    def __repr__(self) -> str:
        return (
            f"Response(status={self._status!r}, headers={len(self._headers)}, "
            f"body_length={self.body_length()})"
        )

    @property
    def status(self) -> str:
        return self._status

    @property
    def headers(self) -> Mapping[str, Tuple[str, ...]]:
        return self._headers

    @property
    def fields(self) -> Tuple[Tuple[str, str], ...]:
        """Every received (name, value) pair in arrival order."""
        return self._fields

    @property
    def body(self) -> Optional[bytes]:
        return self._body

    def has_body(self) -> bool:
        return self._body is not None

    def body_length(self) -> int:
        if self._body is None:
            return -1
        return len(self._body)

    def get_header(self, name: str) -> Optional[List[str]]:
        """Values of ``name`` matched with exact case, None if absent."""
        values = self._headers.get(name)
        if values is None:
            return None
        return list(values)

    def get_header_any_case(self, name: str) -> List[str]:
        """Values of every header whose name matches ``name`` ignoring case.

        Servers may emit any casing, so all matching names are combined in
        the order they were first received.
        """
        wanted = name.lower()
        values: List[str] = []
        for header_name, header_values in self._headers.items():
            if header_name.lower() == wanted:
                values.extend(header_values)
        return values
