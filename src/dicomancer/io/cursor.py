"""Bounds-checked sequential reader over an in-memory byte buffer."""

from __future__ import annotations

import struct

from dicomancer.core.types import Tag
from dicomancer.errors import TruncatedStream

_U16 = {True: struct.Struct("<H"), False: struct.Struct(">H")}
_U32 = {True: struct.Struct("<I"), False: struct.Struct(">I")}
_TAG = {True: struct.Struct("<HH"), False: struct.Struct(">HH")}


class BinaryCursor:
    """Reads forward through a buffer; never past its end.

    ``base`` is the absolute offset of the buffer's first byte, so cursors
    created with :meth:`window` report offsets in the parent's coordinates.
    """

    def __init__(self, data: bytes | bytearray | memoryview, base: int = 0):
        view = memoryview(data)
        if view.format != "B":
            view = view.cast("B")
        self._view = view
        self._pos = 0
        self.base = base

    @property
    def offset(self) -> int:
        """Absolute offset of the next byte to read."""
        return self.base + self._pos

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._view)

    def __len__(self) -> int:
        return len(self._view)

    def _require(self, n: int) -> None:
        if n < 0 or n > self.remaining:
            raise TruncatedStream(self.offset, n, self.remaining)

    def read_bytes(self, n: int) -> bytes:
        self._require(n)
        chunk = self._view[self._pos : self._pos + n].tobytes()
        self._pos += n
        return chunk

    def peek(self, n: int) -> bytes:
        self._require(n)
        return self._view[self._pos : self._pos + n].tobytes()

    def skip(self, n: int) -> None:
        self._require(n)
        self._pos += n

    def read_uint16(self, little_endian: bool = True) -> int:
        self._require(2)
        (value,) = _U16[little_endian].unpack_from(self._view, self._pos)
        self._pos += 2
        return value

    def read_uint32(self, little_endian: bool = True) -> int:
        self._require(4)
        (value,) = _U32[little_endian].unpack_from(self._view, self._pos)
        self._pos += 4
        return value

    def peek_uint16(self, little_endian: bool = True) -> int:
        self._require(2)
        return _U16[little_endian].unpack_from(self._view, self._pos)[0]

    def read_tag(self, little_endian: bool = True) -> Tag:
        self._require(4)
        group, element = _TAG[little_endian].unpack_from(self._view, self._pos)
        self._pos += 4
        return Tag(group, element)

    def bookmark(self) -> int:
        return self._pos

    def reset(self, mark: int) -> None:
        """Return to an earlier bookmark; moving forward is not allowed."""
        if mark < 0 or mark > self._pos:
            raise ValueError(f"cannot reset cursor from {self._pos} to {mark}")
        self._pos = mark

    def window(self, n: int) -> BinaryCursor:
        """Child cursor over the next ``n`` bytes; this cursor skips them."""
        self._require(n)
        child = BinaryCursor(self._view[self._pos : self._pos + n], base=self.offset)
        self._pos += n
        return child

    def rest(self) -> bytes:
        """Consume and return everything left."""
        return self.read_bytes(self.remaining)
