from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from smfplay.errors import FormatError, TruncatedDataError  # noqa: E402
from smfplay.reader import (  # noqa: E402
    MAX_VLQ,
    ByteCursor,
    decode_vlq,
    encode_vlq,
)


# Reference encodings published with SMF 1.0.
VLQ_VECTORS = [
    (0x00000000, b"\x00"),
    (0x00000040, b"\x40"),
    (0x0000007F, b"\x7F"),
    (0x00000080, b"\x81\x00"),
    (0x00002000, b"\xC0\x00"),
    (0x00003FFF, b"\xFF\x7F"),
    (0x00004000, b"\x81\x80\x00"),
    (0x00100000, b"\xC0\x80\x00"),
    (0x001FFFFF, b"\xFF\xFF\x7F"),
    (0x00200000, b"\x81\x80\x80\x00"),
    (0x08000000, b"\xC0\x80\x80\x00"),
    (0x0FFFFFFF, b"\xFF\xFF\xFF\x7F"),
]


@pytest.mark.parametrize("value,encoded", VLQ_VECTORS, ids=lambda v: f"{v:#x}" if isinstance(v, int) else None)
def test_vlq_reference_vectors(value: int, encoded: bytes) -> None:
    assert encode_vlq(value) == encoded
    assert decode_vlq(encoded) == (value, len(encoded))


def test_vlq_round_trip_across_range() -> None:
    # Every group boundary plus a coarse stride through the full range.
    values = set(range(0, 300))
    for shift in (7, 14, 21):
        edge = 1 << shift
        values.update({edge - 1, edge, edge + 1})
    values.update(range(0, MAX_VLQ + 1, 0x0012_3457))
    values.add(MAX_VLQ)
    for value in sorted(values):
        assert decode_vlq(encode_vlq(value))[0] == value


@pytest.mark.parametrize("value", [-1, MAX_VLQ + 1])
def test_encode_vlq_rejects_out_of_range(value: int) -> None:
    with pytest.raises(ValueError):
        encode_vlq(value)


def test_decode_vlq_respects_offset() -> None:
    data = b"\xAA\x81\x00\x7F"
    assert decode_vlq(data, 1) == (0x80, 3)
    assert decode_vlq(data, 3) == (0x7F, 4)


def test_vlq_longer_than_four_bytes_is_format_error() -> None:
    with pytest.raises(FormatError):
        ByteCursor(b"\x81\x81\x81\x81\x01").read_vlq()


def test_vlq_missing_final_byte_is_truncated() -> None:
    with pytest.raises(TruncatedDataError):
        ByteCursor(b"\x81\x81").read_vlq()


def test_big_endian_reads() -> None:
    cursor = ByteCursor(b"\x12\x34\x56\x78\x9A\xBC\xDE")
    assert cursor.read_u8() == 0x12
    assert cursor.read_u16() == 0x3456
    assert cursor.read_u32() == 0x789ABCDE
    assert cursor.at_end()


def test_limit_bounds_reads_to_chunk() -> None:
    cursor = ByteCursor(b"\x01\x02\x03\x04")
    child = cursor.limit(2)
    assert child.read_bytes(2) == b"\x01\x02"
    with pytest.raises(TruncatedDataError) as excinfo:
        child.read_u8()
    assert excinfo.value.offset == 2
    # Parent cursor is unaffected.
    assert cursor.offset == 0


def test_rewind_and_peek() -> None:
    cursor = ByteCursor(b"\x90\x3C")
    assert cursor.read_u8() == 0x90
    cursor.rewind()
    assert cursor.peek_u8() == 0x90
    assert cursor.offset == 0


def test_read_bytes_past_end_raises() -> None:
    cursor = ByteCursor(b"\x00\x01", offset=1)
    with pytest.raises(TruncatedDataError):
        cursor.read_bytes(2)
