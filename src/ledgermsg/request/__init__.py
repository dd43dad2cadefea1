# src/ledgermsg/request/__init__.py
"""
ledgermsg — ModificationRequest layer

  - tag: tree model (MasterTag / ScalarTag)
  - codec: bytes <-> tree, per-call decode/encode contexts
  - digest: keccak hash chaining over subtrees and field lists
  - verify: entry signature, field hash and cheque ownership checks
  - builder: construct and seal entries, cheques and requests
  - errors: CheckVerdict / CheckCode and wire errors
"""

from __future__ import annotations

from ledgermsg.request.codec import RequestCodec, decode, decode_and_check, encode
from ledgermsg.request.errors import CheckCode, CheckVerdict, RequestCheckError, WireDecodeError, WireEncodeError
from ledgermsg.request.tag import MasterTag, ScalarTag, Tag, TagDataError, make_tag
from ledgermsg.request.verify import check, get_signer

__all__ = [
    "CheckCode",
    "CheckVerdict",
    "MasterTag",
    "RequestCheckError",
    "RequestCodec",
    "ScalarTag",
    "Tag",
    "TagDataError",
    "WireDecodeError",
    "WireEncodeError",
    "check",
    "decode",
    "decode_and_check",
    "encode",
    "get_signer",
    "make_tag",
]
