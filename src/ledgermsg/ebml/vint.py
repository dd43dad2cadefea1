# src/ledgermsg/ebml/vint.py
"""EBML variable-length integers.

Element ids keep their length-marker bits (0x1A45DFA3 is written as-is).
Element sizes are stored with the marker stripped. Sizes whose value bits are
all ones mean "unknown size" in EBML; this codec does not accept them.
"""

from __future__ import annotations

from typing import Optional, Tuple

MAX_ID_LENGTH = 4
MAX_SIZE_LENGTH = 8


class VintError(ValueError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


def vint_length(first_byte: int) -> int:
    """Total encoded length implied by the first byte (0 if invalid)."""
    if first_byte <= 0 or first_byte > 0xFF:
        return 0
    return 9 - int(first_byte).bit_length()


def read_element_id(buf: bytes | bytearray | memoryview, pos: int = 0) -> Optional[Tuple[int, int]]:
    """Return (element_id, length) or None if more bytes are needed."""
    if pos >= len(buf):
        return None
    length = vint_length(buf[pos])
    if length == 0 or length > MAX_ID_LENGTH:
        raise VintError("invalid_vint", f"invalid element id marker: 0x{buf[pos]:02x}")
    if pos + length > len(buf):
        return None
    return int.from_bytes(bytes(buf[pos : pos + length]), "big"), length


def read_size(buf: bytes | bytearray | memoryview, pos: int = 0) -> Optional[Tuple[int, int]]:
    """Return (size, length) or None if more bytes are needed."""
    if pos >= len(buf):
        return None
    length = vint_length(buf[pos])
    if length == 0:
        raise VintError("invalid_vint", f"invalid size marker: 0x{buf[pos]:02x}")
    if pos + length > len(buf):
        return None
    value = buf[pos] & ((1 << (8 - length)) - 1)
    for b in bytes(buf[pos + 1 : pos + length]):
        value = (value << 8) | b
    if value == (1 << (7 * length)) - 1:
        raise VintError("unknown_size", "unknown-size elements are not supported")
    return value, length


def encode_size(size: int) -> bytes:
    n = int(size)
    if n < 0:
        raise VintError("invalid_vint", f"negative size: {n}")
    for length in range(1, MAX_SIZE_LENGTH + 1):
        # all-ones is reserved for "unknown size"
        if n < (1 << (7 * length)) - 1:
            return ((1 << (7 * length)) | n).to_bytes(length, "big")
    raise VintError("invalid_vint", f"size too large for vint: {n}")


def encode_element_id(element_id: int) -> bytes:
    eid = int(element_id)
    if eid <= 0:
        raise VintError("invalid_vint", f"invalid element id: {eid}")
    length = (eid.bit_length() + 7) // 8
    out = eid.to_bytes(length, "big")
    if length > MAX_ID_LENGTH or vint_length(out[0]) != length:
        raise VintError("invalid_vint", f"element id 0x{eid:x} has no valid length marker")
    return out


def is_valid_element_id(element_id: int) -> bool:
    try:
        encode_element_id(element_id)
        return True
    except VintError:
        return False
