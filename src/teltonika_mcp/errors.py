"""Decode errors raised by the binary codec.

``Incomplete`` is the only retry-safe failure: it means the buffer ends
before the field being read, and feeding more bytes may succeed. Every
other ``DecodeError`` is a content failure for that decode attempt.
"""

from __future__ import annotations


class DecodeError(ValueError):
    """Base class for all codec failures.

    Attributes:
        offset: Absolute byte offset of the offending field, if known.
        field: Name of the field being decoded, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        field: str | None = None,
    ) -> None:
        self.message = message
        self.offset = offset
        self.field = field
        super().__init__(self._format())

    def _format(self) -> str:
        where = []
        if self.field:
            where.append(f"field={self.field}")
        if self.offset is not None:
            where.append(f"offset={self.offset}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message

    @property
    def kind(self) -> str:
        return type(self).__name__


class Incomplete(DecodeError):
    """The buffer ends before the decoded unit does."""

    def __init__(
        self,
        needed: int | None = None,
        *,
        offset: int | None = None,
        field: str | None = None,
    ) -> None:
        self.needed = needed
        if needed is None:
            message = "Need more bytes"
        else:
            message = f"Need at least {needed} more byte(s)"
        super().__init__(message, offset=offset, field=field)


class InvalidPreamble(DecodeError):
    """TCP frame does not start with four zero bytes."""


class InvalidMarker(DecodeError):
    """Fixed marker byte holds an unexpected value."""


class UnrecognizedCodec(DecodeError):
    """Codec byte is not one of the known codec ids."""


class UnsupportedCodec(DecodeError):
    """Codec is known but has no payload shape in this context."""


class UnrecognizedEnumValue(DecodeError):
    """Priority, generation cause or command type byte is unknown."""


class CountMismatch(DecodeError):
    """Declared and decoded element counts disagree."""


class LengthMismatch(DecodeError):
    """A read ran past the end of a fully buffered length-prefixed span."""


class ChecksumMismatch(DecodeError):
    """Frame CRC does not match the CRC computed over its payload."""

    def __init__(
        self,
        expected: int,
        actual: int,
        *,
        offset: int | None = None,
        field: str | None = "crc16",
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch: frame carries 0x{expected:08X}, "
            f"computed 0x{actual:04X}",
            offset=offset,
            field=field,
        )


class InvalidTimestamp(DecodeError):
    """Millisecond timestamp does not map to a calendar instant."""
