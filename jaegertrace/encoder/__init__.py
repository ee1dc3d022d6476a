"""Wire-format encoding of finished spans (jaeger.thrift over compact/binary Thrift)."""

from jaegertrace.encoder.model import (
    Process,
    SpanRefType,
    TagType,
    WireBatch,
    WireLog,
    WireProcess,
    WireSpan,
    WireSpanRef,
    WireTag,
)
from jaegertrace.encoder.thrift_codec import (
    Protocol,
    decode_batch,
    encode_batch,
    encode_wire_batch,
    to_wire_process,
    to_wire_span,
    to_wire_tag,
)

__all__ = [
    "Process",
    "Protocol",
    "SpanRefType",
    "TagType",
    "WireBatch",
    "WireLog",
    "WireProcess",
    "WireSpan",
    "WireSpanRef",
    "WireTag",
    "decode_batch",
    "encode_batch",
    "encode_wire_batch",
    "to_wire_process",
    "to_wire_span",
    "to_wire_tag",
]
