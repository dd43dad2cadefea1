# src/ledgermsg/ebml/schema.py
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ledgermsg.ebml.values import ALL_TYPES, MASTER
from ledgermsg.ebml.vint import is_valid_element_id

_DEFAULT_SCHEMA_FILE = Path(__file__).resolve().parent / "request_schema.yaml"


class SchemaError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class ElementSpec:
    name: str
    id: int
    type: str
    description: str = ""

    @property
    def is_master(self) -> bool:
        return self.type == MASTER


class Schema:
    """Name <-> element id <-> wire type dictionary.

    The wire carries only element ids; everything the codec knows about an
    element (its name and whether it nests children) comes from here.
    """

    def __init__(self, elements: Iterable[ElementSpec]) -> None:
        by_name: Dict[str, ElementSpec] = {}
        by_id: Dict[int, ElementSpec] = {}
        for el in elements:
            _validate_element(el)
            if el.name in by_name:
                raise SchemaError(f"duplicate element name: {el.name}")
            if el.id in by_id:
                raise SchemaError(f"duplicate element id 0x{el.id:x} ({by_id[el.id].name}, {el.name})")
            by_name[el.name] = el
            by_id[el.id] = el
        self._by_name = by_name
        self._by_id = by_id

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def elements(self) -> List[ElementSpec]:
        return list(self._by_name.values())

    def find_by_name(self, name: str) -> ElementSpec:
        el = self._by_name.get(name)
        if el is None:
            raise SchemaError(f"unknown element name: {name!r}")
        return el

    def find_by_id(self, element_id: int) -> ElementSpec:
        el = self._by_id.get(int(element_id))
        if el is None:
            raise SchemaError(f"unknown element id: 0x{int(element_id):x}")
        return el

    def type_of(self, name: str) -> str:
        return self.find_by_name(name).type

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Schema":
        """Build from ``{"elements": {Name: {"id": ..., "type": ...}}}``.

        Ids may be ints or hex strings ("0x1A4D5251").
        """
        if not isinstance(raw, Mapping):
            raise SchemaError("schema must be a mapping")
        elements = raw.get("elements")
        if not isinstance(elements, Mapping) or not elements:
            raise SchemaError("schema must contain a non-empty 'elements' mapping")

        out: List[ElementSpec] = []
        for name, rec in elements.items():
            if not isinstance(rec, Mapping):
                raise SchemaError(f"element {name!r} must be a mapping")
            out.append(
                ElementSpec(
                    name=str(name),
                    id=_parse_id(rec.get("id"), str(name)),
                    type=str(rec.get("type", "")),
                    description=str(rec.get("description") or ""),
                )
            )
        return cls(out)


def _parse_id(v: Any, name: str) -> int:
    if isinstance(v, int) and not isinstance(v, bool):
        return v
    if isinstance(v, str):
        try:
            return int(v.strip(), 0)
        except ValueError:
            pass
    raise SchemaError(f"element {name!r} has invalid id: {v!r}")


def _validate_element(el: ElementSpec) -> None:
    if not el.name:
        raise SchemaError("element name must be non-empty")
    if el.type not in ALL_TYPES:
        raise SchemaError(f"element {el.name!r} has unknown type {el.type!r}")
    if not is_valid_element_id(el.id):
        raise SchemaError(f"element {el.name!r} id 0x{el.id:x} is not a valid EBML id")


def load_schema_yaml(path: str | Path) -> Schema:
    # PyYAML is only needed when a schema file is actually read.
    import yaml

    p = Path(path)
    if not p.is_file():
        raise SchemaError(f"schema file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SchemaError(f"invalid schema yaml {p}: {e}") from e
    return Schema.from_mapping(raw or {})


@lru_cache(maxsize=8)
def _cached_schema(path: str) -> Schema:
    return load_schema_yaml(path)


def default_schema(path: Optional[str | Path] = None) -> Schema:
    """Schema used when callers do not pass one.

    Resolution: explicit path, then LEDGERMSG_SCHEMA_PATH, then the packaged
    request_schema.yaml.
    """
    p = path or (os.environ.get("LEDGERMSG_SCHEMA_PATH") or "").strip() or _DEFAULT_SCHEMA_FILE
    return _cached_schema(str(Path(p).resolve()))
