from __future__ import annotations

import logging

import pytest

from ledgermsg.request.builder import (
    build_cheque,
    build_entry,
    build_field_list,
    build_hashed_field,
    build_request,
    seal,
)
from ledgermsg.request.codec import decode, decode_and_check, encode
from ledgermsg.request.errors import CheckCode, RequestCheckError
from ledgermsg.request.tag import make_tag
from ledgermsg.request.verify import check, check_cheques, get_signer, require_valid
from ledgermsg.testing.sigtools import deterministic_secp256k1_key, flip_bit, signed_request_bytes

ADDR_A, KEY_A = deterministic_secp256k1_key(label="alice")
ADDR_B, KEY_B = deterministic_secp256k1_key(label="bob")
ADDR_C, KEY_C = deterministic_secp256k1_key(label="carol")


def _amt_request_bytes() -> bytes:
    return signed_request_bytes([("amt", 100)], label="alice")


def test_correctly_signed_request_passes() -> None:
    verdict = check(decode(_amt_request_bytes()), ADDR_A)
    assert verdict.ok
    assert verdict.code == CheckCode.OK


def test_get_signer_recovers_entry_author() -> None:
    tree = decode(_amt_request_bytes())
    header = tree.get_child("Entry").get_child("EntryHeader")
    assert get_signer(header) == ADDR_A


def test_signer_leaf_naming_someone_else_is_a_signature_mismatch() -> None:
    entry = build_entry([("amt", 100)], KEY_A, signer=ADDR_B)
    tree = decode(encode(build_request([entry])))

    verdict = check(tree, ADDR_B)
    assert not verdict.ok
    assert verdict.code == CheckCode.SIGNATURE_MISMATCH
    assert verdict.details["sig"].endswith("...")
    assert len(verdict.details["sig"]) == 23
    assert verdict.details["entry_index"] == 0


def test_flipped_field_value_bit_is_a_field_hash_mismatch() -> None:
    data = _amt_request_bytes()
    # FieldValue (id 0x89, size 1, payload 0x64) is the last element written
    at = data.rfind(bytes.fromhex("898164"))
    assert at == len(data) - 3

    tampered = flip_bit(data, at + 2)
    tree = decode(tampered)
    verdict = check(tree, ADDR_A)
    assert verdict.code == CheckCode.FIELD_HASH_MISMATCH

    declared = tree.get_child("Entry").get_child("EntryHeader").get_child("EntryFldHash").raw
    assert verdict.details["hash"] == declared.hex()


def test_tampered_field_name_is_detected() -> None:
    data = _amt_request_bytes()
    at = data.rfind(b"amt")
    tampered = data[:at] + b"amu" + data[at + 3 :]
    assert check(decode(tampered), ADDR_A).code == CheckCode.FIELD_HASH_MISMATCH


def test_reordered_fields_are_detected() -> None:
    entry = build_entry([("a", b"1"), ("b", b"2")], KEY_A)
    entry.remove_children("FieldList")
    entry.add_child(build_field_list([("b", b"2"), ("a", b"1")]))
    assert check(build_request([entry]), ADDR_A).code == CheckCode.FIELD_HASH_MISMATCH


def test_precomputed_field_hashes_are_accepted() -> None:
    entry = build_entry([build_hashed_field("secret", b"xyz"), ("amt", 5)], KEY_A)
    tree = decode(encode(build_request([entry])))
    assert check(tree, ADDR_A).ok


def test_empty_field_list_must_match_empty_aggregate() -> None:
    entry = build_entry([], KEY_A)
    assert check(build_request([entry]), ADDR_A).ok

    header = entry.get_child("EntryHeader")
    header.remove_children("EntryFldHash")
    header.add_child("EntryFldHash", raw=b"\x00" * 32)
    seal(header, KEY_A)
    assert check(build_request([entry]), ADDR_A).code == CheckCode.FIELD_HASH_MISMATCH


def test_cheque_addressed_to_verifier_passes() -> None:
    cheque = build_cheque(7, 1_000, KEY_B)
    entry = build_entry([("amt", 100)], KEY_A, cheques=[cheque])
    tree = decode(encode(build_request([entry])))
    assert check(tree, ADDR_B).ok


def test_foreign_cheque_fails_the_entry() -> None:
    cheque = build_cheque(7, 1_000, KEY_B)
    entry = build_entry([("amt", 100)], KEY_A, cheques=[cheque])
    tree = decode(encode(build_request([entry])))

    verdict = check(tree, ADDR_A)
    assert verdict.code == CheckCode.CHEQUE_NOT_OWNED
    assert verdict.details["cheque"] == "07-7"
    assert verdict.details["cheque_index"] == 0


def test_one_foreign_cheque_among_many_fails() -> None:
    cheques = [build_cheque(1, 10, KEY_B), build_cheque(2, 20, KEY_C), build_cheque(3, 30, KEY_B)]
    entry = build_entry([("amt", 100)], KEY_A, cheques=cheques)
    verdict = check_cheques(entry, ADDR_B)
    assert verdict.code == CheckCode.CHEQUE_NOT_OWNED
    assert verdict.details["cheque_index"] == 1


def test_tampered_cheque_no_longer_resolves_to_owner() -> None:
    cheque = build_cheque(7, 1_000, KEY_B)
    entry = build_entry([("amt", 100)], KEY_A, cheques=[cheque])
    data = encode(build_request([entry]))
    # ChequeAmount 1000 = 0x03e8
    at = data.find(bytes.fromhex("8c8203e8"))
    assert at >= 0
    tampered = data[:at + 3] + b"\xe9" + data[at + 4 :]
    assert check(decode(tampered), ADDR_B).code == CheckCode.CHEQUE_NOT_OWNED


def test_any_failing_entry_fails_the_request() -> None:
    good = build_entry([("amt", 1)], KEY_A)
    bad = build_entry([("amt", 2)], KEY_A, signer=ADDR_C)
    verdict = check(build_request([good, bad]), ADDR_A)
    assert verdict.code == CheckCode.SIGNATURE_MISMATCH
    assert verdict.details["entry_index"] == 1


def test_unrecognized_root_passes_unchecked() -> None:
    entry = build_entry([("amt", 1)], KEY_A, signer=ADDR_C)
    verdict = check(entry, ADDR_A)
    assert verdict.ok
    assert verdict.reason == "unchecked_message_kind"


def test_structural_gaps_fail_closed() -> None:
    no_header = make_tag("Entry")
    no_header.add_child(build_field_list([("amt", 1)]))
    assert check(build_request([no_header]), ADDR_A).code == CheckCode.MALFORMED_REQUEST

    no_fields = build_entry([("amt", 1)], KEY_A)
    no_fields.remove_children("FieldList")
    assert check(build_request([no_fields]), ADDR_A).code == CheckCode.MALFORMED_REQUEST

    short_sig = build_entry([("amt", 1)], KEY_A)
    hdr = short_sig.get_child("EntryHeader")
    hdr.remove_children("Signature")
    hdr.add_child("Signature", raw=b"\x01" * 64)
    verdict = check(build_request([short_sig]), ADDR_A)
    assert verdict.code == CheckCode.MALFORMED_REQUEST
    assert verdict.reason == "bad_signature_length"

    empty_leaf = build_entry([("amt", 1)], KEY_A)
    empty_leaf.get_child("EntryHeader").add_child(make_tag("EntryNonce"))
    verdict = check(build_request([empty_leaf]), ADDR_A)
    assert verdict.code == CheckCode.MALFORMED_REQUEST
    assert verdict.reason == "missing_data"
    assert verdict.details["element"] == "EntryHeader"


def test_leaves_without_data_fail_closed_below_the_header() -> None:
    entry = build_entry([("amt", 1)], KEY_A)
    entry.get_child("FieldList").get_child("Field").add_child(make_tag("FieldHash"))
    verdict = check(build_request([entry]), ADDR_A)
    assert verdict.code == CheckCode.MALFORMED_REQUEST
    assert verdict.reason == "missing_data"

    cheque = build_cheque(7, 1_000, KEY_B)
    cheque.add_child(make_tag("ChequeOffset"))
    entry = build_entry([("amt", 1)], KEY_A, cheques=[cheque])
    verdict = check(build_request([entry]), ADDR_B)
    assert verdict.code == CheckCode.MALFORMED_REQUEST
    assert verdict.reason == "missing_data"
    assert verdict.details["cheque_index"] == 0


def test_undecodable_cheque_range_does_not_break_the_verdict() -> None:
    cheque = make_tag("Cheque")
    cheque.add_child("ChequeRange", raw=b"\x01" * 9)
    entry = build_entry([("amt", 1)], KEY_A, cheques=[cheque])
    verdict = check(build_request([entry]), ADDR_A)
    assert verdict.code == CheckCode.MALFORMED_REQUEST
    assert verdict.reason == "missing_signature"
    assert verdict.details["cheque"] == "?"


def test_unrecoverable_signature_is_a_mismatch() -> None:
    entry = build_entry([("amt", 1)], KEY_A)
    hdr = entry.get_child("EntryHeader")
    hdr.remove_children("Signature")
    hdr.add_child("Signature", raw=b"\x00" * 64 + bytes([37]))
    verdict = check(build_request([entry]), ADDR_A)
    assert verdict.code == CheckCode.SIGNATURE_MISMATCH
    assert verdict.reason == "signature_unrecoverable"


def test_request_without_entries_is_vacuously_valid() -> None:
    assert check(make_tag("ModificationRequest"), ADDR_A).ok


def test_raising_wrappers() -> None:
    data = flip_bit(_amt_request_bytes(), len(_amt_request_bytes()) - 1)
    with pytest.raises(RequestCheckError) as e:
        decode_and_check(data, ADDR_A)
    assert e.value.code == CheckCode.FIELD_HASH_MISMATCH

    tree = decode_and_check(_amt_request_bytes(), ADDR_A)
    assert tree.name == "ModificationRequest"

    with pytest.raises(RequestCheckError):
        require_valid(decode(data), ADDR_A)


def test_verdict_unpacks_like_admission_results() -> None:
    ok, rej = check(decode(_amt_request_bytes()), ADDR_A)
    assert ok is True and rej is None

    ok2, rej2 = check(decode(flip_bit(_amt_request_bytes(), len(_amt_request_bytes()) - 1)), ADDR_A)
    assert ok2 is False
    assert rej2.code == CheckCode.FIELD_HASH_MISMATCH


def test_rejections_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    data = flip_bit(_amt_request_bytes(), len(_amt_request_bytes()) - 1)
    with caplog.at_level(logging.INFO, logger="ledgermsg.verify"):
        check(decode(data), ADDR_A)
    assert any('"event":"check_rejected"' in r.getMessage() for r in caplog.records)
    assert any("field_hash_mismatch" in r.getMessage() for r in caplog.records)
