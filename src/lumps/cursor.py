from __future__ import annotations

from construct import Construct
from construct.core import ConstructError


class Cursor:
    """Read position over an in-memory buffer.

    Every read is bounds-checked; running off either end raises ``error`` (the
    caller's format error type) with the offset and buffer size in the message,
    never a bare ``IndexError`` or a silently short slice.
    """

    __slots__ = ("_data", "_pos", "_error", "_label")

    def __init__(self, data: bytes, *, error: type[Exception] = ValueError, label: str = "buffer") -> None:
        self._data = bytes(data)
        self._pos = 0
        self._error = error
        self._label = label

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int) -> None:
        if not 0 <= offset <= len(self._data):
            raise self._error(f"{self._label}: offset {offset} is out of bounds (size {len(self._data)})")
        self._pos = offset

    def read(self, count: int) -> bytes:
        if count < 0:
            raise self._error(f"{self._label}: negative read length {count} at offset {self._pos}")
        end = self._pos + count
        if end > len(self._data):
            raise self._error(
                f"{self._label}: read of {count} bytes at offset {self._pos} runs past the end (size {len(self._data)})"
            )
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def u8(self) -> int:
        return self.read(1)[0]

    def parse(self, struct: Construct):
        """Parse a fixed-size construct at the current position."""
        raw = self.read(struct.sizeof())
        try:
            return struct.parse(raw)
        except ConstructError as exc:
            raise self._error(f"{self._label}: {exc}") from exc
