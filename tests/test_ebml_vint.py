from __future__ import annotations

import pytest

from ledgermsg.ebml.vint import (
    VintError,
    encode_element_id,
    encode_size,
    is_valid_element_id,
    read_element_id,
    read_size,
)


def test_size_uses_shortest_form() -> None:
    assert encode_size(0) == b"\x80"
    assert encode_size(126) == b"\xfe"
    # 127 would be all-ones in one byte ("unknown size"), so it needs two
    assert encode_size(127) == b"\x40\x7f"
    assert read_size(b"\x40\x7f") == (127, 2)


@pytest.mark.parametrize("n", [0, 1, 126, 127, 16_382, 16_383, 2**21, 2**40, 2**56 - 2])
def test_size_boundaries_read_back(n: int) -> None:
    enc = encode_size(n)
    assert read_size(enc) == (n, len(enc))


def test_read_size_needs_more_bytes() -> None:
    assert read_size(b"") is None
    assert read_size(b"\x40") is None
    assert read_size(b"\x20\x00") is None


def test_unknown_size_is_rejected() -> None:
    with pytest.raises(VintError) as e:
        read_size(b"\xff")
    assert e.value.code == "unknown_size"

    with pytest.raises(VintError) as e2:
        read_size(b"\x7f\xff")
    assert e2.value.code == "unknown_size"


def test_zero_first_byte_is_invalid() -> None:
    with pytest.raises(VintError) as e:
        read_size(b"\x00\x01")
    assert e.value.code == "invalid_vint"


def test_element_ids_keep_marker_bits() -> None:
    assert encode_element_id(0x1A4D5251) == bytes.fromhex("1a4d5251")
    assert encode_element_id(0xE0) == b"\xe0"
    assert read_element_id(bytes.fromhex("1a4d5251ff")) == (0x1A4D5251, 4)
    assert read_element_id(b"\x1a\x4d") is None


def test_ids_without_valid_marker_are_refused() -> None:
    assert not is_valid_element_id(0x0100)
    assert not is_valid_element_id(0x7F)
    assert is_valid_element_id(0x4286)
    with pytest.raises(VintError):
        encode_element_id(0x0100)
    with pytest.raises(VintError):
        # five-byte ids are not allowed
        read_element_id(b"\x08\x00\x00\x00\x01")
