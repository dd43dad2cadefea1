# src/ledgermsg/request/tag.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ledgermsg.ebml.schema import Schema, default_schema
from ledgermsg.ebml.values import MASTER, decode_value, encode_value

Json = Dict[str, Any]


class TagDataError(RuntimeError):
    pass


class Tag(ABC):
    """One element of a request tree.

    Use make_tag() (or MasterTag.add_child) rather than instantiating this
    directly; the concrete class is picked from the schema type:
      - MasterTag: ordered children, no payload
      - ScalarTag: raw payload and/or typed value, no children
    """

    __slots__ = ("name", "type")

    def __init__(self, name: str, type_code: str) -> None:
        self.name = name
        self.type = type_code

    @property
    def is_master(self) -> bool:
        return self.type == MASTER

    def get_child(self, key: Union[str, int]) -> Optional["Tag"]:
        return None

    def get_children(self, name: Optional[str] = None) -> Optional[Tuple["Tag", ...]]:
        return None

    def add_child(self, tag: Union["Tag", str], value: Any = None, *, raw: Optional[bytes] = None) -> "Tag":
        raise TypeError(f"{self.name} is a scalar element and cannot have children")

    def ensure_data(self) -> None:
        return None

    def iter_leaves(self) -> Iterator["ScalarTag"]:
        return iter(())

    @abstractmethod
    def to_dict(self) -> Json:
        """JSON-ready view of this node and everything below it."""


class MasterTag(Tag):
    __slots__ = ("_children", "_index", "_schema")

    def __init__(self, name: str, type_code: str = MASTER, *, schema: Optional[Schema] = None) -> None:
        super().__init__(name, type_code)
        self._children: List[Tag] = []
        # name -> children with that name, in document order; only add_child and
        # remove_children touch it
        self._index: Dict[str, List[Tag]] = {}
        self._schema = schema

    def __repr__(self) -> str:
        return f"MasterTag({self.name!r}, children={len(self._children)})"

    @property
    def schema(self) -> Schema:
        return self._schema or default_schema()

    @property
    def children(self) -> Tuple[Tag, ...]:
        return tuple(self._children)

    def get_child(self, key: Union[str, int]) -> Optional[Tag]:
        if not self._children:
            return None
        if isinstance(key, int) and not isinstance(key, bool):
            if 0 <= key < len(self._children):
                return self._children[key]
            return None
        same = self._index.get(key)
        return same[0] if same else None

    def get_children(self, name: Optional[str] = None) -> Optional[Tuple[Tag, ...]]:
        if not self._children:
            return None
        if name is None:
            return tuple(self._children)
        return tuple(self._index.get(name, ()))

    def add_child(self, tag: Union[Tag, str], value: Any = None, *, raw: Optional[bytes] = None) -> Tag:
        """Append a child and return it.

        ``tag`` is either a ready Tag or an element name. With a name, bytes
        passed as ``value`` (or ``raw``) become the wire payload; anything else
        is kept as the typed value and serialized on ensure_data().
        """
        if isinstance(tag, str):
            if raw is None and isinstance(value, (bytes, bytearray, memoryview)):
                raw, value = bytes(value), None
            tag = make_tag(tag, schema=self._schema, raw=raw, value=value)
        elif not isinstance(tag, Tag):
            raise TypeError(f"child must be a Tag or element name, got {type(tag).__name__}")

        self._children.append(tag)
        self._index.setdefault(tag.name, []).append(tag)
        return tag

    def remove_children(self, name: str) -> int:
        before = len(self._children)
        self._children = [c for c in self._children if c.name != name]
        self._index.pop(name, None)
        return before - len(self._children)

    def iter_leaves(self) -> Iterator["ScalarTag"]:
        for child in self._children:
            yield from child.iter_leaves()

    def to_dict(self) -> Json:
        return {"name": self.name, "children": [c.to_dict() for c in self._children]}


class ScalarTag(Tag):
    __slots__ = ("raw", "value")

    def __init__(self, name: str, type_code: str, *, raw: Optional[bytes] = None, value: Any = None) -> None:
        if type_code == MASTER:
            raise TagDataError(f"{name} is a master element")
        super().__init__(name, type_code)
        self.raw = None if raw is None else bytes(raw)
        self.value = value

    def __repr__(self) -> str:
        shown = self.raw.hex() if self.raw is not None else repr(self.value)
        return f"ScalarTag({self.name!r}, {self.type!r}, {shown})"

    def ensure_data(self) -> None:
        if self.raw is not None:
            return
        if self.value is None:
            raise TagDataError(f"{self.name} has neither raw data nor a value")
        try:
            self.raw = encode_value(self.type, self.value)
        except (TypeError, ValueError) as e:
            raise TagDataError(f"{self.name}: {e}") from e

    def ensure_value(self) -> Any:
        if self.value is None and self.raw is not None:
            self.value = decode_value(self.type, self.raw)
        return self.value

    def iter_leaves(self) -> Iterator["ScalarTag"]:
        yield self

    def to_dict(self) -> Json:
        self.ensure_data()
        value = self.ensure_value()
        if isinstance(value, bytes):
            value = value.hex()
        elif isinstance(value, datetime):
            value = value.isoformat()
        return {"name": self.name, "type": self.type, "raw": self.raw.hex() if self.raw else "", "value": value}


def make_tag(
    name: str,
    *,
    schema: Optional[Schema] = None,
    type_code: Optional[str] = None,
    raw: Optional[bytes] = None,
    value: Any = None,
) -> Tag:
    """Build a node; the type comes from the schema unless given explicitly."""
    t = type_code or (schema or default_schema()).type_of(name)
    if t == MASTER:
        if raw is not None or value is not None:
            raise TagDataError(f"{name} is a master element and carries no payload")
        return MasterTag(name, t, schema=schema)
    return ScalarTag(name, t, raw=raw, value=value)
