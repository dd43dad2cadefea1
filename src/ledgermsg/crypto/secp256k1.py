# src/ledgermsg/crypto/secp256k1.py
from __future__ import annotations

from typing import Final, Tuple

from coincurve import PrivateKey, PublicKey

from ledgermsg.crypto.keccak import keccak256
from ledgermsg.crypto.keys import PrivateKeyInput, load_private_key

SIGNATURE_LENGTH: Final[int] = 65
DIGEST_LENGTH: Final[int] = 32
ADDRESS_LENGTH: Final[int] = 20

# Wire signatures carry v in {37, 38}: the usual {27, 28} shifted by 10.
V_BASE: Final[int] = 27
V_WIRE_BIAS: Final[int] = 10


class SignatureError(ValueError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


def _require_digest(digest: bytes) -> bytes:
    d = bytes(digest)
    if len(d) != DIGEST_LENGTH:
        raise SignatureError("bad_digest", f"digest must be {DIGEST_LENGTH} bytes, got {len(d)}")
    return d


def split_signature(signature: bytes) -> Tuple[bytes, bytes, int]:
    """Return (r, s, v) of a 65-byte wire signature."""
    sig = bytes(signature)
    if len(sig) != SIGNATURE_LENGTH:
        raise SignatureError("bad_signature_length", f"signature must be {SIGNATURE_LENGTH} bytes, got {len(sig)}")
    return sig[:32], sig[32:64], sig[64]


def recovery_id_from_v(v: int) -> int:
    if v > V_BASE + 1:
        v -= V_WIRE_BIAS
    if v not in (V_BASE, V_BASE + 1):
        raise SignatureError("bad_recovery_id", f"unsupported signature v: {v}")
    return v - V_BASE


def public_key_to_address(public_key: bytes) -> bytes:
    """Last 20 bytes of keccak-256 over the 64-byte X||Y public key."""
    pk = bytes(public_key)
    if len(pk) == 65 and pk[0] == 0x04:
        pk = pk[1:]
    elif len(pk) == 33:
        pk = PublicKey(pk).format(compressed=False)[1:]
    if len(pk) != 64:
        raise SignatureError("bad_public_key", f"unexpected public key length: {len(public_key)}")
    return keccak256(pk)[-ADDRESS_LENGTH:]


def address_of(private_key: PrivateKeyInput) -> bytes:
    sk = PrivateKey(load_private_key(private_key))
    return public_key_to_address(sk.public_key.format(compressed=False))


def sign(digest: bytes, private_key: PrivateKeyInput) -> bytes:
    """ECDSA-sign a 32-byte digest; returns r(32) || s(32) || v with v in {37, 38}."""
    d = _require_digest(digest)
    sk = PrivateKey(load_private_key(private_key))
    sig = bytearray(sk.sign_recoverable(d, hasher=None))
    v = sig[64] + V_BASE
    if v < 30:
        v += V_WIRE_BIAS
    sig[64] = v
    return bytes(sig)


def recover_public_key(digest: bytes, signature: bytes) -> bytes:
    """Uncompressed (65-byte) public key that produced ``signature`` over ``digest``."""
    d = _require_digest(digest)
    r, s, v = split_signature(signature)
    compact = r + s + bytes([recovery_id_from_v(v)])
    try:
        pub = PublicKey.from_signature_and_message(compact, d, hasher=None)
    except ValueError as e:
        raise SignatureError("unrecoverable", f"public key recovery failed: {e}") from e
    return pub.format(compressed=False)


def recover_address(digest: bytes, signature: bytes) -> bytes:
    return public_key_to_address(recover_public_key(digest, signature))
