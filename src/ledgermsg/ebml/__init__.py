# src/ledgermsg/ebml/__init__.py
"""
ledgermsg — EBML container layer

  - vint: element id / size variable-length integers
  - values: typed scalar payloads (uint, int, float, strings, binary, date)
  - schema: name <-> id <-> type dictionary (YAML-backed)
  - stream: incremental event decoder and event encoder

Nothing here knows about requests, hashing or signatures; see
ledgermsg.request for the tree model built on top of these events.
"""

from __future__ import annotations

__all__ = [
    "vint",
    "values",
    "schema",
    "stream",
]
