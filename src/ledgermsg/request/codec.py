# src/ledgermsg/request/codec.py
"""
Tree codec: bytes <-> Tag tree.

Each decode()/encode() call owns its own context (nesting stack, output
sink), so a RequestCodec may be shared across threads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ledgermsg.config import CodecConfig, load_codec_config
from ledgermsg.ebml.schema import Schema, SchemaError, default_schema
from ledgermsg.ebml.stream import END, START, TAG, EbmlDecoder, EbmlEncoder, ElementInfo
from ledgermsg.ebml.values import MASTER
from ledgermsg.request.errors import RequestCheckError, WireDecodeError, WireEncodeError
from ledgermsg.request.tag import MasterTag, ScalarTag, Tag, TagDataError
from ledgermsg.request.verify import check
from ledgermsg.util.log_events import log_event

log = logging.getLogger("ledgermsg.codec")


@dataclass
class DecodeContext:
    schema: Schema
    # stack[0] is the synthetic root frame; it never leaves the stack
    stack: List[MasterTag] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.stack:
            self.stack.append(MasterTag("", schema=self.schema))

    @property
    def root(self) -> MasterTag:
        return self.stack[0]

    def on_event(self, kind: str, info: ElementInfo) -> None:
        top = self.stack[-1]
        if kind == START:
            node = MasterTag(info.name, info.type, schema=self.schema)
            top.add_child(node)
            self.stack.append(node)
        elif kind == TAG:
            top.add_child(ScalarTag(info.name, info.type, raw=info.raw, value=info.value))
        else:
            # END: the decoder only emits this for an element it opened
            self.stack.pop()


@dataclass
class EncodeContext:
    chunks: List[bytes] = field(default_factory=list)

    def on_chunk(self, chunk: bytes) -> None:
        self.chunks.append(chunk)

    def output(self) -> bytes:
        return b"".join(self.chunks)


class RequestCodec:
    def __init__(self, *, schema: Optional[Schema] = None, config: Optional[CodecConfig] = None) -> None:
        self.config = config or load_codec_config()
        self.schema = schema or default_schema(self.config.schema_path)

    def decode(self, data: bytes) -> Tag:
        """Parse exactly one top-level element and return it."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("data must be bytes")
        ctx = DecodeContext(schema=self.schema)
        decoder = EbmlDecoder(
            self.schema,
            sink=ctx.on_event,
            max_depth=self.config.max_depth,
            max_element_bytes=self.config.max_element_bytes,
        )
        try:
            decoder.feed(bytes(data))
            decoder.close()
        except WireDecodeError as e:
            log_event(log, "decode_failed", code=e.code, error=str(e), size=len(data))
            raise

        top = ctx.root.get_children()
        if not top or len(top) != 1:
            n = 0 if not top else len(top)
            log_event(log, "decode_failed", code="not_single_root", top_level=n, size=len(data))
            raise WireDecodeError("not_single_root", f"expected exactly one top-level element, got {n}")
        return top[0]

    def encode(self, tree: Tag) -> bytes:
        ctx = EncodeContext()
        encoder = EbmlEncoder(self.schema, sink=ctx.on_chunk)
        self._write(encoder, tree)
        return ctx.output()

    def _write(self, encoder: EbmlEncoder, node: Tag) -> None:
        # schema decides master vs scalar, not the python class of the node
        try:
            is_master = self.schema.type_of(node.name) == MASTER
        except SchemaError as e:
            raise WireEncodeError("unknown_element", str(e)) from e
        if is_master != node.is_master:
            raise WireEncodeError("ill_typed", f"{node.name}: node kind disagrees with schema type")

        if is_master:
            encoder.write(START, node.name)
            for child in node.get_children() or ():
                self._write(encoder, child)
            encoder.write(END, node.name)
            return

        try:
            node.ensure_data()
        except TagDataError as e:
            raise WireEncodeError("missing_data", str(e)) from e
        encoder.write(TAG, node.name, getattr(node, "raw", None))

    def decode_and_check(self, data: bytes, self_address: bytes) -> Tag:
        """decode() then check(); raises RequestCheckError on a failing verdict."""
        tree = self.decode(data)
        verdict = check(tree, self_address)
        if not verdict.ok:
            raise RequestCheckError(verdict)
        return tree


_default_codec: Optional[RequestCodec] = None


def default_codec() -> RequestCodec:
    global _default_codec
    if _default_codec is None:
        _default_codec = RequestCodec()
    return _default_codec


def decode(data: bytes) -> Tag:
    return default_codec().decode(data)


def encode(tree: Tag) -> bytes:
    return default_codec().encode(tree)


def decode_and_check(data: bytes, self_address: bytes) -> Tag:
    return default_codec().decode_and_check(data, self_address)
