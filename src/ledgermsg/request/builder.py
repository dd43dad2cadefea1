# src/ledgermsg/request/builder.py
from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence, Tuple, Union

from ledgermsg.crypto.keys import PrivateKeyInput
from ledgermsg.crypto.secp256k1 import address_of, sign
from ledgermsg.ebml.schema import Schema
from ledgermsg.ebml.values import encode_unsigned
from ledgermsg.request.digest import field_hash, field_list_digest, signing_digest
from ledgermsg.request.tag import Tag, make_tag

FieldInput = Union[Tag, Tuple[str, Any]]


def _value_bytes(value: Any) -> bytes:
    """FieldValue is opaque bytes on the wire; ints and strings get a fixed encoding."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, int) and not isinstance(value, bool):
        return encode_unsigned(value)
    raise TypeError(f"unsupported field value type: {type(value).__name__}")


def seal(node: Tag, private_key: PrivateKeyInput) -> bytes:
    """(Re)sign ``node``: drop any Signature child and append a fresh one."""
    if not node.is_master:
        raise TypeError(f"{node.name} is not a master element")
    node.remove_children("Signature")  # type: ignore[attr-defined]
    sig = sign(signing_digest(node), private_key)
    node.add_child("Signature", raw=sig)
    return sig


def build_field(name: str, value: Any, *, schema: Optional[Schema] = None) -> Tag:
    fld = make_tag("Field", schema=schema)
    fld.add_child("FieldName", raw=name.encode("ascii"))
    fld.add_child("FieldValue", raw=_value_bytes(value))
    return fld


def build_hashed_field(name: str, value: Any, *, schema: Optional[Schema] = None) -> Tag:
    """Field that carries only the precomputed hash of name || value."""
    fld = make_tag("Field", schema=schema)
    fld.add_child("FieldHash", raw=field_hash(name.encode("ascii"), _value_bytes(value)))
    return fld


def build_field_list(fields: Iterable[FieldInput], *, schema: Optional[Schema] = None) -> Tag:
    field_list = make_tag("FieldList", schema=schema)
    for f in fields:
        field_list.add_child(f if isinstance(f, Tag) else build_field(f[0], f[1], schema=schema))
    return field_list


def build_cheque(
    range_value: int,
    amount: int,
    private_key: PrivateKeyInput,
    *,
    schema: Optional[Schema] = None,
    extra: Sequence[Tuple[str, Any]] = (),
) -> Tag:
    cheque = make_tag("Cheque", schema=schema)
    cheque.add_child("ChequeRange", int(range_value))
    cheque.add_child("ChequeAmount", int(amount))
    for name, value in extra:
        cheque.add_child(name, value)
    seal(cheque, private_key)
    return cheque


def build_entry(
    fields: Iterable[FieldInput],
    private_key: PrivateKeyInput,
    *,
    schema: Optional[Schema] = None,
    cheques: Sequence[Tag] = (),
    header_extra: Sequence[Tuple[str, Any]] = (),
    signer: Optional[bytes] = None,
) -> Tag:
    """Signed Entry: header (Signer, extras, EntryFldHash, Signature), FieldList, ChequeList.

    ``signer`` overrides the declared Signer leaf; only useful for building
    deliberately inconsistent entries.
    """
    field_list = build_field_list(fields, schema=schema)

    entry = make_tag("Entry", schema=schema)
    header = entry.add_child("EntryHeader")
    header.add_child("Signer", raw=signer if signer is not None else address_of(private_key))
    for name, value in header_extra:
        header.add_child(name, value)
    header.add_child("EntryFldHash", raw=field_list_digest(field_list))
    seal(header, private_key)

    entry.add_child(field_list)
    if cheques:
        cheque_list = entry.add_child("ChequeList")
        for c in cheques:
            cheque_list.add_child(c)
    return entry


def build_request(entries: Iterable[Tag], *, schema: Optional[Schema] = None) -> Tag:
    request = make_tag("ModificationRequest", schema=schema)
    for e in entries:
        request.add_child(e)
    return request
