# src/ledgermsg/ebml/stream.py
"""
Event-level EBML reader/writer.

Decoding turns a byte stream into a flat sequence of events:
  ("start", info)  a master element begins
  ("tag", info)    a complete scalar element (raw payload + typed value)
  ("end", info)    the innermost open master element is finished

Encoding consumes the same three events and produces bytes. Master sizes are
only known once all children are written, so each open master buffers its body
until its "end" event.

Neither class knows anything about trees; ledgermsg.request.codec builds them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ledgermsg.ebml.schema import ElementSpec, Schema, SchemaError
from ledgermsg.ebml.values import decode_value
from ledgermsg.ebml.vint import VintError, encode_element_id, encode_size, read_element_id, read_size

START = "start"
TAG = "tag"
END = "end"

DEFAULT_MAX_DEPTH = 32
DEFAULT_MAX_ELEMENT_BYTES = 16 * 1024 * 1024


class WireDecodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class WireEncodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


@dataclass(frozen=True, slots=True)
class ElementInfo:
    name: str
    id: int
    type: str
    offset: int
    data_size: int
    raw: Optional[bytes] = None
    value: Any = None


EventSink = Callable[[str, ElementInfo], None]
ChunkSink = Callable[[bytes], None]


@dataclass(slots=True)
class _OpenMaster:
    info: ElementInfo
    end: int


class EbmlDecoder:
    """Incremental decoder. Feed bytes in any chunking, then call close()."""

    def __init__(
        self,
        schema: Schema,
        *,
        sink: EventSink,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_element_bytes: int = DEFAULT_MAX_ELEMENT_BYTES,
    ) -> None:
        self._schema = schema
        self._sink = sink
        self.max_depth = int(max_depth)
        self.max_element_bytes = int(max_element_bytes)

        self._buf = bytearray()
        # absolute stream offset of self._buf[0]
        self._base = 0
        self._open: List[_OpenMaster] = []
        self._closed = False

    @property
    def depth(self) -> int:
        return len(self._open)

    def feed(self, chunk: bytes) -> None:
        if self._closed:
            raise WireDecodeError("decoder_closed", "decoder already closed")
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise TypeError("chunk must be bytes")
        self._buf.extend(chunk)
        self._drain()

    def close(self) -> None:
        self._closed = True
        if self._buf:
            raise WireDecodeError(
                "truncated", f"truncated element at offset {self._base} ({len(self._buf)} bytes pending)"
            )
        if self._open:
            names = ",".join(m.info.name for m in self._open)
            raise WireDecodeError("truncated", f"unterminated master element(s): {names}")

    def _drain(self) -> None:
        buf = self._buf
        pos = 0
        while True:
            self._finish_masters(self._base + pos)

            try:
                got_id = read_element_id(buf, pos)
                if got_id is None:
                    break
                element_id, id_len = got_id
                got_size = read_size(buf, pos + id_len)
                if got_size is None:
                    break
                size, size_len = got_size
            except VintError as e:
                raise WireDecodeError(e.code, f"offset {self._base + pos}: {e}") from e

            try:
                spec = self._schema.find_by_id(element_id)
            except SchemaError as e:
                raise WireDecodeError("unknown_element", f"offset {self._base + pos}: {e}") from e

            if size > self.max_element_bytes:
                raise WireDecodeError(
                    "element_too_large", f"{spec.name}: {size} bytes exceeds limit {self.max_element_bytes}"
                )

            start = self._base + pos
            header_len = id_len + size_len
            end = start + header_len + size
            if self._open and end > self._open[-1].end:
                raise WireDecodeError(
                    "child_overruns_parent", f"{spec.name} at offset {start} overruns {self._open[-1].info.name}"
                )

            if spec.is_master:
                if len(self._open) >= self.max_depth:
                    raise WireDecodeError("too_deep", f"nesting deeper than {self.max_depth} at {spec.name}")
                info = ElementInfo(name=spec.name, id=spec.id, type=spec.type, offset=start, data_size=size)
                self._open.append(_OpenMaster(info=info, end=end))
                self._sink(START, info)
                pos += header_len
                continue

            if pos + header_len + size > len(buf):
                break
            raw = bytes(buf[pos + header_len : pos + header_len + size])
            self._sink(TAG, _scalar_info(spec, start, raw))
            pos += header_len + size

        if pos:
            del buf[:pos]
            self._base += pos

    def _finish_masters(self, at: int) -> None:
        while self._open and self._open[-1].end == at:
            m = self._open.pop()
            self._sink(END, m.info)


def _scalar_info(spec: ElementSpec, offset: int, raw: bytes) -> ElementInfo:
    try:
        value = decode_value(spec.type, raw)
    except ValueError as e:
        raise WireDecodeError("ill_typed", f"{spec.name} at offset {offset}: {e}") from e
    return ElementInfo(
        name=spec.name, id=spec.id, type=spec.type, offset=offset, data_size=len(raw), raw=raw, value=value
    )


class EbmlEncoder:
    """Event-driven writer; every completed top-level element goes to sink."""

    def __init__(self, schema: Schema, *, sink: ChunkSink) -> None:
        self._schema = schema
        self._sink = sink
        self._open: List[tuple[ElementSpec, bytearray]] = []

    @property
    def depth(self) -> int:
        return len(self._open)

    def write(self, kind: str, name: str, raw: Optional[bytes] = None) -> None:
        spec = self._lookup(name)
        if kind == START:
            if not spec.is_master:
                raise WireEncodeError("ill_typed", f"{name} is not a master element")
            self._open.append((spec, bytearray()))
        elif kind == TAG:
            if spec.is_master:
                raise WireEncodeError("ill_typed", f"{name} is a master element, not a scalar")
            if raw is None:
                raise WireEncodeError("missing_data", f"{name} has no payload")
            self._emit(_element_bytes(spec, bytes(raw)))
        elif kind == END:
            if not self._open:
                raise WireEncodeError("unbalanced", f"end of {name} without start")
            open_spec, body = self._open.pop()
            if open_spec.name != name:
                raise WireEncodeError("unbalanced", f"end of {name} while {open_spec.name} is open")
            self._emit(_element_bytes(open_spec, bytes(body)))
        else:
            raise WireEncodeError("unknown_event", f"unknown event kind: {kind!r}")

    def _lookup(self, name: str) -> ElementSpec:
        try:
            return self._schema.find_by_name(name)
        except SchemaError as e:
            raise WireEncodeError("unknown_element", str(e)) from e

    def _emit(self, element: bytes) -> None:
        if self._open:
            self._open[-1][1].extend(element)
        else:
            self._sink(element)


def _element_bytes(spec: ElementSpec, payload: bytes) -> bytes:
    try:
        return encode_element_id(spec.id) + encode_size(len(payload)) + payload
    except VintError as e:
        raise WireEncodeError(e.code, f"{spec.name}: {e}") from e
