# src/ledgermsg/ebml/values.py
from __future__ import annotations

import struct
from datetime import datetime, timedelta, timezone
from typing import Any, Final

MASTER: Final[str] = "m"
UINT: Final[str] = "u"
INT: Final[str] = "i"
FLOAT: Final[str] = "f"
ASCII: Final[str] = "s"
UTF8: Final[str] = "8"
BINARY: Final[str] = "b"
DATE: Final[str] = "d"

SCALAR_TYPES: Final[frozenset[str]] = frozenset({UINT, INT, FLOAT, ASCII, UTF8, BINARY, DATE})
ALL_TYPES: Final[frozenset[str]] = SCALAR_TYPES | {MASTER}

# EBML dates count nanoseconds from the millennium, not the unix epoch.
EBML_EPOCH: Final[datetime] = datetime(2001, 1, 1, tzinfo=timezone.utc)

# integer payloads are at most 8 bytes on the wire
UINT_MAX: Final[int] = (1 << 64) - 1
INT_MIN: Final[int] = -(1 << 63)
INT_MAX: Final[int] = (1 << 63) - 1


def encode_unsigned(n: int) -> bytes:
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"unsigned value must be int, got {type(n).__name__}")
    if n < 0:
        raise ValueError(f"unsigned value must be >= 0, got {n}")
    if n > UINT_MAX:
        raise ValueError(f"unsigned value does not fit in 8 bytes: {n}")
    length = max(1, (n.bit_length() + 7) // 8)
    return n.to_bytes(length, "big")


def encode_signed(n: int) -> bytes:
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"signed value must be int, got {type(n).__name__}")
    if not (INT_MIN <= n <= INT_MAX):
        raise ValueError(f"signed value does not fit in 8 bytes: {n}")
    length = 1
    while not (-(1 << (8 * length - 1)) <= n < (1 << (8 * length - 1))):
        length += 1
    return n.to_bytes(length, "big", signed=True)


def encode_float(x: float) -> bytes:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        raise TypeError(f"float value must be a number, got {type(x).__name__}")
    f = float(x)
    try:
        short = struct.pack(">f", f)
    except OverflowError:
        return struct.pack(">d", f)
    if struct.unpack(">f", short)[0] == f:
        return short
    return struct.pack(">d", f)


def encode_date(v: datetime | int) -> bytes:
    if isinstance(v, datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        delta = v - EBML_EPOCH
        ns = (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000
    elif isinstance(v, int) and not isinstance(v, bool):
        ns = int(v)
    else:
        raise TypeError(f"date value must be datetime or int nanoseconds, got {type(v).__name__}")
    if not (INT_MIN <= ns <= INT_MAX):
        raise ValueError(f"date is out of range for 8-byte nanoseconds: {v!r}")
    return ns.to_bytes(8, "big", signed=True)


def encode_value(type_code: str, value: Any) -> bytes:
    """Serialize a typed scalar value into its wire payload."""
    if type_code == UINT:
        return encode_unsigned(value)
    if type_code == INT:
        return encode_signed(value)
    if type_code == FLOAT:
        return encode_float(value)
    if type_code == ASCII:
        if not isinstance(value, str):
            raise TypeError(f"string value must be str, got {type(value).__name__}")
        return value.encode("ascii")
    if type_code == UTF8:
        if not isinstance(value, str):
            raise TypeError(f"utf-8 value must be str, got {type(value).__name__}")
        return value.encode("utf-8")
    if type_code == BINARY:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise TypeError(f"binary value must be bytes-like, got {type(value).__name__}")
    if type_code == DATE:
        return encode_date(value)
    if type_code == MASTER:
        raise ValueError("master elements carry no scalar payload")
    raise ValueError(f"unknown element type: {type_code!r}")


def decode_value(type_code: str, raw: bytes) -> Any:
    """Parse a wire payload into its typed value."""
    data = bytes(raw)
    if type_code == UINT:
        if len(data) > 8:
            raise ValueError(f"unsigned integer too long: {len(data)} bytes")
        return int.from_bytes(data, "big") if data else 0
    if type_code == INT:
        if len(data) > 8:
            raise ValueError(f"signed integer too long: {len(data)} bytes")
        return int.from_bytes(data, "big", signed=True) if data else 0
    if type_code == FLOAT:
        if len(data) == 0:
            return 0.0
        if len(data) == 4:
            return struct.unpack(">f", data)[0]
        if len(data) == 8:
            return struct.unpack(">d", data)[0]
        raise ValueError(f"float payload must be 0, 4 or 8 bytes, got {len(data)}")
    if type_code == ASCII:
        return data.decode("ascii")
    if type_code == UTF8:
        return data.decode("utf-8")
    if type_code == BINARY:
        return data
    if type_code == DATE:
        if len(data) not in (0, 8):
            raise ValueError(f"date payload must be 8 bytes, got {len(data)}")
        ns = int.from_bytes(data, "big", signed=True) if data else 0
        return EBML_EPOCH + timedelta(microseconds=ns // 1_000)
    raise ValueError(f"cannot decode payload for element type: {type_code!r}")
