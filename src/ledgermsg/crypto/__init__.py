# src/ledgermsg/crypto/__init__.py
"""
Crypto primitives used by request verification:
  - keccak: keccak-256 (original padding, not SHA3-256)
  - secp256k1: recoverable ECDSA signatures and address derivation
  - keys: private key loading/generation
"""
