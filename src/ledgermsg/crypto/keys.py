# src/ledgermsg/crypto/keys.py
from __future__ import annotations

from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

PrivateKeyInput = Union[bytes, bytearray, str, ec.EllipticCurvePrivateKey]

# secp256k1 group order
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def _secret_from_int(d: int) -> bytes:
    if not (1 <= d < _N):
        raise ValueError("private key scalar out of range for secp256k1")
    return d.to_bytes(32, "big")


def _secret_from_cryptography(key: ec.EllipticCurvePrivateKey) -> bytes:
    if not isinstance(key.curve, ec.SECP256K1):
        raise ValueError(f"private key must be on secp256k1, got {key.curve.name}")
    return _secret_from_int(key.private_numbers().private_value)


def load_private_key(data: PrivateKeyInput, *, password: bytes | None = None) -> bytes:
    """Normalize key material to a 32-byte secp256k1 secret.

    Accepts:
      - 32 raw bytes
      - hex string (optionally 0x-prefixed)
      - PEM text/bytes or DER bytes of an EC private key
      - a cryptography EllipticCurvePrivateKey
    """
    if isinstance(data, ec.EllipticCurvePrivateKey):
        return _secret_from_cryptography(data)

    if isinstance(data, str):
        s = data.strip()
        if s.startswith("-----BEGIN"):
            return load_private_key(s.encode("ascii"), password=password)
        if s.startswith(("0x", "0X")):
            s = s[2:]
        try:
            raw = bytes.fromhex(s)
        except ValueError as e:
            raise ValueError("private key string is neither hex nor PEM") from e
        if len(raw) != 32:
            raise ValueError(f"hex private key must be 32 bytes, got {len(raw)}")
        return _secret_from_int(int.from_bytes(raw, "big"))

    if isinstance(data, (bytes, bytearray)):
        b = bytes(data)
        if len(b) == 32:
            return _secret_from_int(int.from_bytes(b, "big"))
        if b.lstrip().startswith(b"-----BEGIN"):
            key = serialization.load_pem_private_key(b, password=password)
        else:
            key = serialization.load_der_private_key(b, password=password)
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise ValueError("key material is not an EC private key")
        return _secret_from_cryptography(key)

    raise TypeError(f"unsupported private key type: {type(data).__name__}")


def generate_private_key() -> bytes:
    return _secret_from_cryptography(ec.generate_private_key(ec.SECP256K1()))


def private_key_to_pem(secret: bytes) -> bytes:
    key = ec.derive_private_key(int.from_bytes(load_private_key(secret), "big"), ec.SECP256K1())
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
