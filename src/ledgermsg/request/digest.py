# src/ledgermsg/request/digest.py
from __future__ import annotations

from typing import Iterable, Optional

from ledgermsg.crypto.keccak import KeccakHash, keccak256, new_accumulator
from ledgermsg.request.tag import Tag


def digest_subtree(node: Tag, acc: Optional[KeccakHash] = None) -> KeccakHash:
    """Stream the payload bytes of every leaf under ``node`` into ``acc``.

    Leaves are visited in document order and all go into the same running
    hash; children are never hashed separately and combined. Returns the
    accumulator (a fresh one if none was given) without finalizing it.
    """
    if node.is_master:
        for child in node.get_children() or ():
            acc = digest_subtree(child, acc)
        # an empty master still yields a usable accumulator
        return acc if acc is not None else new_accumulator()

    if acc is None:
        acc = new_accumulator()
    node.ensure_data()
    acc.update(node.raw)  # type: ignore[attr-defined]
    return acc


def digest_nodes(nodes: Iterable[Tag], acc: Optional[KeccakHash] = None) -> bytes:
    """Finalized digest over several sibling subtrees, in the given order."""
    if acc is None:
        acc = new_accumulator()
    for n in nodes:
        acc = digest_subtree(n, acc)
    return acc.digest()


def subtree_digest(node: Tag) -> bytes:
    return digest_subtree(node).digest()


def signing_digest(node: Tag) -> bytes:
    """Digest a signer commits to: every child of ``node`` except Signature."""
    return digest_nodes(c for c in (node.get_children() or ()) if c.name != "Signature")


class MalformedFieldError(ValueError):
    pass


def field_hash(name_raw: bytes, value_raw: bytes) -> bytes:
    return keccak256(name_raw, value_raw)


def leaf_raw(node: Tag, name: str) -> Optional[bytes]:
    leaf = node.get_child(name)
    if leaf is None or leaf.is_master:
        return None
    leaf.ensure_data()
    return leaf.raw  # type: ignore[attr-defined]


def field_list_digest(field_list: Tag) -> bytes:
    """Aggregate over a FieldList.

    Each Field contributes either its precomputed FieldHash as-is, or
    keccak(FieldName || FieldValue). Contributions are folded into a single
    keccak in field order; an empty list yields keccak of nothing.
    """
    agg = new_accumulator()
    for i, fld in enumerate(field_list.get_children("Field") or ()):
        precomputed = leaf_raw(fld, "FieldHash")
        if precomputed is not None:
            agg.update(precomputed)
            continue
        name_raw = leaf_raw(fld, "FieldName")
        value_raw = leaf_raw(fld, "FieldValue")
        if name_raw is None or value_raw is None:
            raise MalformedFieldError(f"Field #{i} has neither FieldHash nor FieldName+FieldValue")
        agg.update(field_hash(name_raw, value_raw))
    return agg.digest()
