"""Sequential big-endian reader over an immutable SMF byte buffer.

SMF integers are big-endian.  Delta times and meta/sysex lengths use the
MIDI variable-length quantity (VLQ): 7 bits per byte, most significant
group first, high bit set on every byte except the last.  A VLQ in a
conforming file is at most 4 bytes long (max 0x0FFFFFFF).
"""

from __future__ import annotations

import struct
from typing import Optional, Tuple

from .errors import FormatError, TruncatedDataError

MAX_VLQ = 0x0FFFFFFF
MAX_VLQ_BYTES = 4


def encode_vlq(value: int) -> bytes:
    """Encode ``value`` as a MIDI variable-length quantity."""
    if value < 0 or value > MAX_VLQ:
        raise ValueError(f"VLQ value out of range: {value}")
    groups = [value & 0x7F]
    value >>= 7
    while value:
        groups.append((value & 0x7F) | 0x80)
        value >>= 7
    return bytes(reversed(groups))


def decode_vlq(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a VLQ at ``offset``; returns ``(value, next_offset)``."""
    cursor = ByteCursor(data, offset)
    value = cursor.read_vlq()
    return value, cursor.offset


class ByteCursor:
    """Read position over ``data[offset:end]``.

    Every read checks against ``end`` and raises
    :class:`TruncatedDataError` instead of returning short data, so
    callers never have to length-check slices themselves.
    """

    __slots__ = ("data", "offset", "end")

    def __init__(self, data: bytes, offset: int = 0, end: Optional[int] = None) -> None:
        self.data = data
        self.offset = offset
        self.end = len(data) if end is None else min(end, len(data))

    def __repr__(self) -> str:
        return f"ByteCursor(offset=0x{self.offset:X}, end=0x{self.end:X})"

    @property
    def remaining(self) -> int:
        return max(0, self.end - self.offset)

    def at_end(self) -> bool:
        return self.offset >= self.end

    def _require(self, count: int) -> None:
        if self.offset + count > self.end:
            raise TruncatedDataError(
                f"need {count} bytes at 0x{self.offset:X}, only {self.remaining} left",
                offset=self.offset,
            )

    def limit(self, end: int) -> "ByteCursor":
        """Child cursor at the current offset that may not read past ``end``."""
        return ByteCursor(self.data, self.offset, min(end, self.end))

    def seek(self, offset: int) -> None:
        if offset < 0 or offset > self.end:
            raise TruncatedDataError(f"seek to 0x{offset:X} outside buffer", offset=offset)
        self.offset = offset

    def rewind(self, count: int = 1) -> None:
        self.seek(self.offset - count)

    def peek_u8(self) -> int:
        self._require(1)
        return self.data[self.offset]

    def read_u8(self) -> int:
        self._require(1)
        value = self.data[self.offset]
        self.offset += 1
        return value

    def read_u16(self) -> int:
        self._require(2)
        value = struct.unpack_from(">H", self.data, self.offset)[0]
        self.offset += 2
        return value

    def read_u32(self) -> int:
        self._require(4)
        value = struct.unpack_from(">I", self.data, self.offset)[0]
        self.offset += 4
        return value

    def read_bytes(self, count: int) -> bytes:
        if count < 0:
            raise ValueError(f"negative read length {count}")
        self._require(count)
        chunk = bytes(self.data[self.offset : self.offset + count])
        self.offset += count
        return chunk

    def read_vlq(self) -> int:
        start = self.offset
        value = 0
        for _ in range(MAX_VLQ_BYTES):
            byte = self.read_u8()
            value = (value << 7) | (byte & 0x7F)
            if not byte & 0x80:
                return value
        raise FormatError(f"variable-length quantity at 0x{start:X} exceeds 4 bytes")
