# src/ledgermsg/request/errors.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from ledgermsg.ebml.stream import WireDecodeError, WireEncodeError

__all__ = [
    "CheckCode",
    "CheckVerdict",
    "RequestCheckError",
    "WireDecodeError",
    "WireEncodeError",
]


class CheckCode(str, Enum):
    OK = "ok"
    SIGNATURE_MISMATCH = "signature_mismatch"
    FIELD_HASH_MISMATCH = "field_hash_mismatch"
    CHEQUE_NOT_OWNED = "cheque_not_owned"
    MALFORMED_REQUEST = "malformed_request"


@dataclass(frozen=True)
class CheckVerdict:
    ok: bool
    code: CheckCode
    reason: str
    details: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.ok

    def __iter__(self) -> Iterator[Any]:
        """Allow `ok, verdict = check(...)` unpacking."""
        yield self.ok
        yield None if self.ok else self

    @staticmethod
    def passed(reason: str = "verified") -> "CheckVerdict":
        return CheckVerdict(True, CheckCode.OK, reason, None)

    @staticmethod
    def reject(code: CheckCode, reason: str, details: Optional[Dict[str, Any]] = None) -> "CheckVerdict":
        return CheckVerdict(False, code, reason, details)


class RequestCheckError(Exception):
    """Raised by the exception-style wrappers (decode_and_check, require_valid)."""

    def __init__(self, verdict: CheckVerdict) -> None:
        super().__init__(f"{verdict.code.value}:{verdict.reason}")
        self.verdict = verdict

    @property
    def code(self) -> CheckCode:
        return self.verdict.code
