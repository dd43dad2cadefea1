# src/ledgermsg/request/verify.py
"""
Signature / integrity checks for decoded requests.

check(tree, self_address) is a strict AND over:

  ModificationRequest
    Entry*            signer recovered from EntryHeader == Signer leaf
                      FieldList aggregate == EntryFldHash
      Cheque*         signer recovered from the Cheque == self_address

The first failing check decides the verdict. Nothing raises for a bad
request; callers get a CheckVerdict (see decode_and_check for the raising
wrapper).
"""

from __future__ import annotations

import logging

from ledgermsg.crypto.secp256k1 import SignatureError, recover_address
from ledgermsg.request.digest import MalformedFieldError, field_list_digest, leaf_raw, signing_digest
from ledgermsg.request.errors import CheckCode, CheckVerdict, RequestCheckError
from ledgermsg.request.tag import Tag, TagDataError
from ledgermsg.util.log_events import log_event

log = logging.getLogger("ledgermsg.verify")

MODIFICATION_REQUEST = "ModificationRequest"


def _with_details(v: CheckVerdict, **extra: object) -> CheckVerdict:
    details = dict(v.details or {})
    details.update(extra)
    return CheckVerdict.reject(v.code, v.reason, details)


def get_signer(node: Tag) -> bytes:
    """Recover the address that signed ``node``.

    The digest covers every child of ``node`` except its Signature leaf.
    Raises SignatureError if the signature is missing or unusable.
    """
    signature = leaf_raw(node, "Signature")
    if signature is None:
        raise SignatureError("missing_signature", f"{node.name} has no Signature")
    return recover_address(signing_digest(node), signature)


def _signature_failure(e: SignatureError, node: Tag) -> CheckVerdict:
    if e.code in {"missing_signature", "bad_signature_length"}:
        return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, e.code, {"element": node.name, "error": str(e)})
    return CheckVerdict.reject(CheckCode.SIGNATURE_MISMATCH, "signature_unrecoverable", {"error": str(e)})


def _missing_data(e: TagDataError, node: Tag) -> CheckVerdict:
    return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, "missing_data", {"element": node.name, "error": str(e)})


def check(tree: Tag, self_address: bytes) -> CheckVerdict:
    if tree.name != MODIFICATION_REQUEST:
        # Unknown message kinds are not validated at all.
        log_event(log, "check_skipped", root=tree.name)
        return CheckVerdict.passed("unchecked_message_kind")

    verdict = check_modification_request(tree, self_address)
    if verdict.ok:
        log_event(log, "check_passed", root=tree.name)
    else:
        log_event(log, "check_rejected", root=tree.name, code=verdict.code.value, reason=verdict.reason)
    return verdict


def check_modification_request(request: Tag, self_address: bytes) -> CheckVerdict:
    for i, entry in enumerate(request.get_children("Entry") or ()):
        v = check_entry(entry, self_address)
        if not v.ok:
            return _with_details(v, entry_index=i)
    return CheckVerdict.passed()


def check_entry(entry: Tag, self_address: bytes) -> CheckVerdict:
    header = entry.get_child("EntryHeader")
    if header is None or not header.is_master:
        return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, "missing_entry_header")

    try:
        signer = leaf_raw(header, "Signer")
        declared_hash = leaf_raw(header, "EntryFldHash")
        if signer is None:
            return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, "missing_signer")
        if declared_hash is None:
            return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, "missing_entry_field_hash")
        recovered = get_signer(header)
    except SignatureError as e:
        return _signature_failure(e, header)
    except TagDataError as e:
        return _missing_data(e, header)

    if recovered != signer:
        sig = leaf_raw(header, "Signature") or b""
        return CheckVerdict.reject(
            CheckCode.SIGNATURE_MISMATCH,
            "entry_signature_check_failed",
            {"sig": sig.hex()[:20] + "...", "signer": signer.hex(), "recovered": recovered.hex()},
        )

    field_list = entry.get_child("FieldList")
    if field_list is None or not field_list.is_master:
        return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, "missing_field_list")
    v = check_fields(field_list, declared_hash)
    if not v.ok:
        return v

    return check_cheques(entry, self_address)


def check_fields(field_list: Tag, expected_hash: bytes) -> CheckVerdict:
    try:
        actual = field_list_digest(field_list)
    except MalformedFieldError as e:
        return CheckVerdict.reject(CheckCode.MALFORMED_REQUEST, "malformed_field", {"error": str(e)})
    except TagDataError as e:
        return _missing_data(e, field_list)

    if actual != bytes(expected_hash):
        return CheckVerdict.reject(
            CheckCode.FIELD_HASH_MISMATCH,
            "fields_hash_does_not_match",
            {"hash": bytes(expected_hash).hex()},
        )
    return CheckVerdict.passed()


def _cheque_range_label(cheque: Tag) -> str:
    rng = cheque.get_child("ChequeRange")
    if rng is None or rng.is_master:
        return "?"
    try:
        rng.ensure_data()
        return f"{rng.raw.hex()}-{rng.ensure_value()}"  # type: ignore[attr-defined]
    except (TagDataError, ValueError):
        return "?"


def check_cheques(entry: Tag, self_address: bytes) -> CheckVerdict:
    cheque_list = entry.get_child("ChequeList")
    if cheque_list is None:
        return CheckVerdict.passed()

    me = bytes(self_address)
    for i, cheque in enumerate(cheque_list.get_children("Cheque") or ()):
        try:
            recovered = get_signer(cheque)
        except SignatureError as e:
            return _with_details(_signature_failure(e, cheque), cheque_index=i, cheque=_cheque_range_label(cheque))
        except TagDataError as e:
            return _with_details(_missing_data(e, cheque), cheque_index=i)

        if recovered != me:
            return CheckVerdict.reject(
                CheckCode.CHEQUE_NOT_OWNED,
                "cheque_is_not_mine",
                {"cheque_index": i, "cheque": _cheque_range_label(cheque), "recovered": recovered.hex()},
            )
    return CheckVerdict.passed()


def require_valid(tree: Tag, self_address: bytes) -> None:
    verdict = check(tree, self_address)
    if not verdict.ok:
        raise RequestCheckError(verdict)
