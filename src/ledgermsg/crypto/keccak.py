# src/ledgermsg/crypto/keccak.py
"""keccak-256 as used for Ethereum-style addresses and request digests.

This is the original Keccak padding, not NIST SHA3-256; hashlib.sha3_256
gives different digests for the same input.
"""

from __future__ import annotations

from typing import Any

from Crypto.Hash import keccak

# pycryptodome's Keccak_Hash; kept as Any in signatures so callers need not
# import Crypto themselves.
KeccakHash = Any


def new_accumulator() -> KeccakHash:
    return keccak.new(digest_bits=256)


def keccak256(*parts: bytes) -> bytes:
    h = new_accumulator()
    for p in parts:
        h.update(bytes(p))
    return h.digest()


EMPTY_KECCAK256 = keccak256()
