"""
Field layouts used by the command catalog.

A field knows where it lives in a payload, how wide it is, and what a
decoder should report when the payload is too short to contain it.
All multi-byte values use little-endian byte order.
"""

import struct
from typing import Any, Dict, Optional, Sequence, Tuple, Type

from .exceptions import EncodeError

STRING_PAD_CHARS = "\0 ?"


def pack_string(value: str, width: int) -> bytes:
    """
    Encode an ASCII string into a fixed-width field.

    A value exactly ``width`` long is stored without a terminator; a longer
    value is cut to ``width - 1`` characters plus NUL; a shorter value is
    NUL padded.
    """
    data = value.encode("ascii")
    if len(data) > width:
        data = data[:width - 1] + b"\0"
    return data.ljust(width, b"\0")


def unpack_string(data: bytes) -> str:
    """Decode a NUL-terminated ASCII field, trimming firmware padding."""
    text = bytes(data).split(b"\0", 1)[0].decode("ascii", errors="replace")
    return text.rstrip(STRING_PAD_CHARS)


class Field:
    """Fixed-offset integer field."""

    def __init__(
        self,
        name: str,
        offset: int,
        fmt: str = "B",
        enum: Optional[Type] = None,
        valid: Optional[Sequence[int]] = None,
        absent: Any = -1
    ):
        """
        Args:
            name: Attribute name on the command/response dataclass
            offset: Byte offset in the payload
            fmt: struct format character (B, b, H, h, I, i)
            enum: Enum type applied on decode (unknown values stay ints)
            valid: Allowed values on encode, beyond the width check
            absent: Value reported when the payload is too short
        """
        self.name = name
        self.offset = offset
        self.fmt = "<" + fmt
        self.size = struct.calcsize(self.fmt)
        self.enum = enum
        self.valid = valid
        self.absent = None if enum is not None and absent == -1 else absent

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.name,)

    def _to_int(self, value: Any, opcode: Optional[int]) -> int:
        if isinstance(value, bool):
            return int(value)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise EncodeError(self.name, value, "not an integer", opcode=opcode)

    def pack(self, buf: bytearray, obj: Any, opcode: Optional[int] = None) -> None:
        value = self._to_int(getattr(obj, self.name), opcode)
        if self.valid is not None and value not in self.valid:
            raise EncodeError(self.name, value, "value out of range", opcode=opcode)
        try:
            struct.pack_into(self.fmt, buf, self.offset, value)
        except struct.error as e:
            raise EncodeError(self.name, value, str(e), opcode=opcode) from e

    def unpack(self, data: bytes) -> Dict[str, Any]:
        if len(data) < self.end:
            return {self.name: self.absent}
        value = struct.unpack_from(self.fmt, data, self.offset)[0]
        if self.enum is not None:
            try:
                value = self.enum(value)
            except ValueError:
                pass
        return {self.name: value}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, offset={self.offset})"


class BoolField(Field):
    """Single byte flag (0 = False)."""

    def __init__(self, name: str, offset: int):
        super().__init__(name, offset, "B", absent=False)

    def pack(self, buf: bytearray, obj: Any, opcode: Optional[int] = None) -> None:
        buf[self.offset] = 1 if getattr(obj, self.name) else 0

    def unpack(self, data: bytes) -> Dict[str, Any]:
        if len(data) < self.end:
            return {self.name: False}
        return {self.name: data[self.offset] != 0}


class StrField(Field):
    """Fixed-width ASCII string, NUL terminated or padded."""

    def __init__(self, name: str, offset: int, width: int):
        super().__init__(name, offset, "B", absent="")
        self.size = width

    def pack(self, buf: bytearray, obj: Any, opcode: Optional[int] = None) -> None:
        value = getattr(obj, self.name)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise EncodeError(self.name, value, "not a string", opcode=opcode)
        try:
            buf[self.offset:self.end] = pack_string(value, self.size)
        except UnicodeEncodeError as e:
            raise EncodeError(self.name, value, "not ASCII", opcode=opcode) from e

    def unpack(self, data: bytes) -> Dict[str, Any]:
        if len(data) < self.end:
            return {self.name: ""}
        return {self.name: unpack_string(data[self.offset:self.end])}


class BytesField(Field):
    """Fixed-width raw byte window."""

    def __init__(self, name: str, offset: int, width: int):
        super().__init__(name, offset, "B", absent=b"")
        self.size = width

    def pack(self, buf: bytearray, obj: Any, opcode: Optional[int] = None) -> None:
        value = bytes(getattr(obj, self.name) or b"")
        if len(value) > self.size:
            raise EncodeError(self.name, value, f"longer than {self.size} bytes", opcode=opcode)
        buf[self.offset:self.end] = value.ljust(self.size, b"\0")

    def unpack(self, data: bytes) -> Dict[str, Any]:
        if len(data) < self.end:
            return {self.name: b""}
        return {self.name: bytes(data[self.offset:self.end])}


class VarBytesField(Field):
    """
    Variable-length byte block, optionally described by a count field.

    Layout: ``[count at count_offset] ... [data at offset]``. With ``window``
    the block always occupies ``window`` bytes and only the first ``count``
    bytes are meaningful. With ``terminated`` the count includes a trailing
    NUL that is written on encode and stripped on decode. Without a count
    field the block runs to the end of the payload.
    """

    def __init__(
        self,
        name: str,
        offset: int,
        max_len: int,
        count_offset: Optional[int] = None,
        count_fmt: str = "B",
        count_name: Optional[str] = None,
        window: Optional[int] = None,
        terminated: bool = False,
        min_len: int = 0
    ):
        super().__init__(name, offset, "B", absent=b"")
        self.max_len = max_len
        self.min_len = min_len
        self.count = Field(count_name or f"{name}_count", count_offset, count_fmt) \
            if count_offset is not None else None
        self.count_name = count_name
        self.window = window
        self.terminated = terminated
        self.size = window or 0

    @property
    def names(self) -> Tuple[str, ...]:
        if self.count_name:
            return (self.name, self.count_name)
        return (self.name,)

    def pack(self, buf: bytearray, obj: Any, opcode: Optional[int] = None) -> None:
        value = bytes(getattr(obj, self.name) or b"")
        if not self.min_len <= len(value) <= self.max_len:
            raise EncodeError(
                self.name, value,
                f"length must be {self.min_len}..{self.max_len} bytes", opcode=opcode
            )
        if self.terminated:
            value += b"\0"
        required = self.offset + max(len(value), self.window or 0)
        if len(buf) < required:
            buf.extend(bytes(required - len(buf)))
        buf[self.offset:self.offset + len(value)] = value
        if self.count is not None:
            struct.pack_into(self.count.fmt, buf, self.count.offset, len(value))

    def unpack(self, data: bytes) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if self.count is None:
            block = bytes(data[self.offset:])
            count = len(block)
        else:
            count = self.count.unpack(data)[self.count.name]
            if count == -1:
                block = b""
            else:
                limit = min(count, self.window or count)
                block = bytes(data[self.offset:self.offset + limit])
        if self.terminated and block.endswith(b"\0"):
            block = block[:-1]
        values[self.name] = block
        if self.count_name:
            values[self.count_name] = count
        return values
