# src/ledgermsg/__init__.py
"""
ledgermsg — signed ModificationRequest codec and verifier

  - ebml: schema-driven container format (ids, sizes, typed payloads, events)
  - request: tag tree, tree codec, digest chaining, verification, builders
  - crypto: keccak-256, secp256k1 sign/recover, key loading
  - config: codec limits and schema location
"""

from __future__ import annotations

__version__ = "0.4.0"

__all__ = [
    "ebml",
    "request",
    "crypto",
    "config",
]
