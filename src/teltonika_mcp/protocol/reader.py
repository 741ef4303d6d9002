"""Big-endian cursor over a byte buffer.

A top-level reader sits on the edge of what has been received so far:
running off its end raises ``Incomplete``. A reader created with
``sub_reader()`` covers a length-prefixed span that is already fully
buffered, so running off its end raises ``LengthMismatch`` instead.
"""

from __future__ import annotations

from ..errors import DecodeError, Incomplete, LengthMismatch


class ByteReader:
    """Sequential reader tracking absolute offsets for error reports."""

    def __init__(
        self,
        data: bytes,
        offset: int = 0,
        end: int | None = None,
        *,
        bounded: bool = False,
    ) -> None:
        self._source = data
        self._data = memoryview(data)
        self._offset = offset
        self._end = len(data) if end is None else end
        self._bounded = bounded

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return self._end - self._offset

    def _take(self, size: int, field: str) -> memoryview:
        if size > self.remaining:
            if self._bounded:
                raise LengthMismatch(
                    f"{field} needs {size} byte(s) but only "
                    f"{self.remaining} remain in the declared length",
                    offset=self._offset,
                    field=field,
                )
            raise Incomplete(size - self.remaining, offset=self._offset, field=field)
        start = self._offset
        self._offset += size
        return self._data[start : self._offset]

    def read_uint(self, width: int, field: str) -> int:
        return int.from_bytes(self._take(width, field), "big")

    def read_u8(self, field: str) -> int:
        return self.read_uint(1, field)

    def read_u16(self, field: str) -> int:
        return self.read_uint(2, field)

    def read_u32(self, field: str) -> int:
        return self.read_uint(4, field)

    def read_u64(self, field: str) -> int:
        return self.read_uint(8, field)

    def read_int32(self, field: str) -> int:
        return int.from_bytes(self._take(4, field), "big", signed=True)

    def read_bytes(self, size: int, field: str) -> bytes:
        return bytes(self._take(size, field))

    def expect(
        self,
        tag: bytes,
        field: str,
        error: type[DecodeError],
    ) -> None:
        """Consume ``tag`` or raise ``error`` if the bytes differ."""
        start = self._offset
        found = self.read_bytes(len(tag), field)
        if found != tag:
            raise error(
                f"Expected {tag.hex()} but found {found.hex()}",
                offset=start,
                field=field,
            )

    def sub_reader(self, length: int, field: str) -> ByteReader:
        """Split off the next ``length`` bytes as a bounded reader."""
        self._take(length, field)
        return ByteReader(
            self._source,
            self._offset - length,
            self._offset,
            bounded=True,
        )
