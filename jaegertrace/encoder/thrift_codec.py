"""
Encode finished spans as jaeger.thrift ``emitBatch`` messages.

The mapping from spans to wire records is pure and deterministic: the same
process and span sequence always produce the same bytes. The byte layout is
produced by the ``thrift`` library's compact or binary protocol writing into
an in-memory transport.
"""

from __future__ import annotations

import struct
from enum import Enum
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union

from thrift.Thrift import TException, TMessageType, TType
from thrift.protocol.TBinaryProtocol import TBinaryProtocol
from thrift.protocol.TCompactProtocol import TCompactProtocol
from thrift.transport.TTransport import TMemoryBuffer

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
from jaegertrace.errors import DecodingFailed, EncodingFailed
from jaegertrace.tracer.span import FinishedSpan, Log, SpanReference, Tag
from jaegertrace.utils.helpers import ns_to_us, to_signed_i64

EMIT_BATCH_METHOD = "emitBatch"

_CODEC_ERRORS = (TException, struct.error, ValueError, TypeError, KeyError, EOFError, OverflowError)


class Protocol(str, Enum):
    COMPACT = "compact"
    BINARY = "binary"


def _new_protocol(protocol: Union[Protocol, str], trans: TMemoryBuffer):
    if Protocol(protocol) is Protocol.COMPACT:
        return TCompactProtocol(trans)
    return TBinaryProtocol(trans)


# Span -> wire record mapping

def to_wire_tag(tag: Tag) -> WireTag:
    value = tag.value
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return WireTag(tag.key, TagType.BOOL, v_bool=value)
    if isinstance(value, int):
        return WireTag(tag.key, TagType.LONG, v_long=value)
    if isinstance(value, float):
        return WireTag(tag.key, TagType.DOUBLE, v_double=value)
    if isinstance(value, bytes):
        return WireTag(tag.key, TagType.BINARY, v_binary=value)
    return WireTag(tag.key, TagType.STRING, v_str=str(value))


def to_wire_log(log: Log) -> WireLog:
    return WireLog(
        timestamp=ns_to_us(log.timestamp_ns),
        fields=[to_wire_tag(t) for t in log.fields],
    )


def to_wire_span_ref(ref: SpanReference) -> WireSpanRef:
    trace_id = ref.context.trace_id
    return WireSpanRef(
        ref_type=SpanRefType(ref.kind.value),
        trace_id_low=to_signed_i64(trace_id.low),
        trace_id_high=to_signed_i64(trace_id.high),
        span_id=to_signed_i64(ref.context.span_id),
    )


def to_wire_span(span: FinishedSpan) -> WireSpan:
    ctx = span.context
    return WireSpan(
        trace_id_low=to_signed_i64(ctx.trace_id.low),
        trace_id_high=to_signed_i64(ctx.trace_id.high),
        span_id=to_signed_i64(ctx.span_id),
        parent_span_id=to_signed_i64(ctx.parent_span_id or 0),
        operation_name=span.operation_name,
        flags=ctx.flags,
        start_time=span.start_time_us,
        duration=span.duration_us,
        references=[to_wire_span_ref(r) for r in span.references],
        tags=[to_wire_tag(t) for t in span.tags],
        logs=[to_wire_log(log) for log in span.logs],
    )


def to_wire_process(process: Process) -> WireProcess:
    return WireProcess(
        service_name=process.service_name,
        tags=[to_wire_tag(t) for t in process.tags],
    )


# Thrift writers

def _write_field(oprot, name: str, ttype: int, fid: int, write: Callable, value: Any) -> None:
    oprot.writeFieldBegin(name, ttype, fid)
    write(value)
    oprot.writeFieldEnd()


def _write_list(oprot, etype: int, items: Sequence, write_item: Callable) -> None:
    oprot.writeListBegin(etype, len(items))
    for item in items:
        write_item(oprot, item)
    oprot.writeListEnd()


def _write_tag(oprot, tag: WireTag) -> None:
    oprot.writeStructBegin("Tag")
    _write_field(oprot, "key", TType.STRING, 1, oprot.writeString, tag.key)
    _write_field(oprot, "vType", TType.I32, 2, oprot.writeI32, int(tag.v_type))
    if tag.v_str is not None:
        _write_field(oprot, "vStr", TType.STRING, 3, oprot.writeString, tag.v_str)
    if tag.v_double is not None:
        _write_field(oprot, "vDouble", TType.DOUBLE, 4, oprot.writeDouble, tag.v_double)
    if tag.v_bool is not None:
        _write_field(oprot, "vBool", TType.BOOL, 5, oprot.writeBool, tag.v_bool)
    if tag.v_long is not None:
        _write_field(oprot, "vLong", TType.I64, 6, oprot.writeI64, tag.v_long)
    if tag.v_binary is not None:
        _write_field(oprot, "vBinary", TType.STRING, 7, oprot.writeBinary, tag.v_binary)
    oprot.writeFieldStop()
    oprot.writeStructEnd()


def _write_log(oprot, log: WireLog) -> None:
    oprot.writeStructBegin("Log")
    _write_field(oprot, "timestamp", TType.I64, 1, oprot.writeI64, log.timestamp)
    oprot.writeFieldBegin("fields", TType.LIST, 2)
    _write_list(oprot, TType.STRUCT, log.fields, _write_tag)
    oprot.writeFieldEnd()
    oprot.writeFieldStop()
    oprot.writeStructEnd()


def _write_span_ref(oprot, ref: WireSpanRef) -> None:
    oprot.writeStructBegin("SpanRef")
    _write_field(oprot, "refType", TType.I32, 1, oprot.writeI32, int(ref.ref_type))
    _write_field(oprot, "traceIdLow", TType.I64, 2, oprot.writeI64, ref.trace_id_low)
    _write_field(oprot, "traceIdHigh", TType.I64, 3, oprot.writeI64, ref.trace_id_high)
    _write_field(oprot, "spanId", TType.I64, 4, oprot.writeI64, ref.span_id)
    oprot.writeFieldStop()
    oprot.writeStructEnd()


def _write_span(oprot, span: WireSpan) -> None:
    oprot.writeStructBegin("Span")
    _write_field(oprot, "traceIdLow", TType.I64, 1, oprot.writeI64, span.trace_id_low)
    _write_field(oprot, "traceIdHigh", TType.I64, 2, oprot.writeI64, span.trace_id_high)
    _write_field(oprot, "spanId", TType.I64, 3, oprot.writeI64, span.span_id)
    _write_field(oprot, "parentSpanId", TType.I64, 4, oprot.writeI64, span.parent_span_id)
    _write_field(oprot, "operationName", TType.STRING, 5, oprot.writeString, span.operation_name)
    if span.references is not None:
        oprot.writeFieldBegin("references", TType.LIST, 6)
        _write_list(oprot, TType.STRUCT, span.references, _write_span_ref)
        oprot.writeFieldEnd()
    _write_field(oprot, "flags", TType.I32, 7, oprot.writeI32, span.flags)
    _write_field(oprot, "startTime", TType.I64, 8, oprot.writeI64, span.start_time)
    _write_field(oprot, "duration", TType.I64, 9, oprot.writeI64, span.duration)
    if span.tags is not None:
        oprot.writeFieldBegin("tags", TType.LIST, 10)
        _write_list(oprot, TType.STRUCT, span.tags, _write_tag)
        oprot.writeFieldEnd()
    if span.logs is not None:
        oprot.writeFieldBegin("logs", TType.LIST, 11)
        _write_list(oprot, TType.STRUCT, span.logs, _write_log)
        oprot.writeFieldEnd()
    oprot.writeFieldStop()
    oprot.writeStructEnd()


def _write_process(oprot, process: WireProcess) -> None:
    oprot.writeStructBegin("Process")
    _write_field(oprot, "serviceName", TType.STRING, 1, oprot.writeString, process.service_name)
    if process.tags is not None:
        oprot.writeFieldBegin("tags", TType.LIST, 2)
        _write_list(oprot, TType.STRUCT, process.tags, _write_tag)
        oprot.writeFieldEnd()
    oprot.writeFieldStop()
    oprot.writeStructEnd()


def _write_batch(oprot, batch: WireBatch) -> None:
    oprot.writeStructBegin("Batch")
    oprot.writeFieldBegin("process", TType.STRUCT, 1)
    _write_process(oprot, batch.process)
    oprot.writeFieldEnd()
    oprot.writeFieldBegin("spans", TType.LIST, 2)
    _write_list(oprot, TType.STRUCT, batch.spans, _write_span)
    oprot.writeFieldEnd()
    oprot.writeFieldStop()
    oprot.writeStructEnd()


def encode_wire_batch(
    batch: WireBatch,
    protocol: Union[Protocol, str] = Protocol.COMPACT,
    seq_id: int = 0,
) -> bytes:
    """
    Serialize a wire batch as a oneway ``Agent.emitBatch`` message.

    Raises:
        EncodingFailed: If the thrift writer rejects the batch
    """
    protocol = Protocol(protocol)
    try:
        trans = TMemoryBuffer()
        oprot = _new_protocol(protocol, trans)
        oprot.writeMessageBegin(EMIT_BATCH_METHOD, TMessageType.ONEWAY, seq_id)
        oprot.writeStructBegin("emitBatch_args")
        oprot.writeFieldBegin("batch", TType.STRUCT, 1)
        _write_batch(oprot, batch)
        oprot.writeFieldEnd()
        oprot.writeFieldStop()
        oprot.writeStructEnd()
        oprot.writeMessageEnd()
        return trans.getvalue()
    except _CODEC_ERRORS as e:
        raise EncodingFailed(
            "failed to encode emitBatch message",
            {"protocol": protocol.value, "spans": len(batch.spans)},
            cause=e,
        ) from e


def encode_batch(
    process: Process,
    spans: Sequence[FinishedSpan],
    protocol: Union[Protocol, str] = Protocol.COMPACT,
    seq_id: int = 0,
) -> bytes:
    """
    Encode a process and finished spans into one emitBatch message.

    Span order is preserved; nothing is reordered or deduplicated.

    Raises:
        EncodingFailed: On any failure, which indicates a bug rather than bad input
    """
    try:
        batch = WireBatch(
            process=to_wire_process(process),
            spans=[to_wire_span(span) for span in spans],
        )
    except _CODEC_ERRORS + (AttributeError,) as e:
        raise EncodingFailed(
            "failed to map spans to wire records", {"spans": len(spans)}, cause=e
        ) from e
    return encode_wire_batch(batch, protocol, seq_id)


# Reference decoder

_FieldSpec = Dict[int, Tuple[str, int, Callable]]


def _read_struct(iprot, fields: _FieldSpec) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    iprot.readStructBegin()
    while True:
        _, ftype, fid = iprot.readFieldBegin()
        if ftype == TType.STOP:
            break
        entry = fields.get(fid)
        if entry is not None and entry[1] == ftype:
            values[entry[0]] = entry[2](iprot)
        else:
            iprot.skip(ftype)
        iprot.readFieldEnd()
    iprot.readStructEnd()
    return values


def _list_of(read_item: Callable) -> Callable:
    def read(iprot) -> List:
        _, size = iprot.readListBegin()
        items = [read_item(iprot) for _ in range(size)]
        iprot.readListEnd()
        return items

    return read


def _read_tag(iprot) -> WireTag:
    values = _read_struct(
        iprot,
        {
            1: ("key", TType.STRING, lambda p: p.readString()),
            2: ("v_type", TType.I32, lambda p: TagType(p.readI32())),
            3: ("v_str", TType.STRING, lambda p: p.readString()),
            4: ("v_double", TType.DOUBLE, lambda p: p.readDouble()),
            5: ("v_bool", TType.BOOL, lambda p: p.readBool()),
            6: ("v_long", TType.I64, lambda p: p.readI64()),
            7: ("v_binary", TType.STRING, lambda p: p.readBinary()),
        },
    )
    return WireTag(**values)


def _read_log(iprot) -> WireLog:
    values = _read_struct(
        iprot,
        {
            1: ("timestamp", TType.I64, lambda p: p.readI64()),
            2: ("fields", TType.LIST, _list_of(_read_tag)),
        },
    )
    return WireLog(**values)


def _read_span_ref(iprot) -> WireSpanRef:
    values = _read_struct(
        iprot,
        {
            1: ("ref_type", TType.I32, lambda p: SpanRefType(p.readI32())),
            2: ("trace_id_low", TType.I64, lambda p: p.readI64()),
            3: ("trace_id_high", TType.I64, lambda p: p.readI64()),
            4: ("span_id", TType.I64, lambda p: p.readI64()),
        },
    )
    return WireSpanRef(**values)


def _read_span(iprot) -> WireSpan:
    values = _read_struct(
        iprot,
        {
            1: ("trace_id_low", TType.I64, lambda p: p.readI64()),
            2: ("trace_id_high", TType.I64, lambda p: p.readI64()),
            3: ("span_id", TType.I64, lambda p: p.readI64()),
            4: ("parent_span_id", TType.I64, lambda p: p.readI64()),
            5: ("operation_name", TType.STRING, lambda p: p.readString()),
            6: ("references", TType.LIST, _list_of(_read_span_ref)),
            7: ("flags", TType.I32, lambda p: p.readI32()),
            8: ("start_time", TType.I64, lambda p: p.readI64()),
            9: ("duration", TType.I64, lambda p: p.readI64()),
            10: ("tags", TType.LIST, _list_of(_read_tag)),
            11: ("logs", TType.LIST, _list_of(_read_log)),
        },
    )
    return WireSpan(**values)


def _read_process(iprot) -> WireProcess:
    values = _read_struct(
        iprot,
        {
            1: ("service_name", TType.STRING, lambda p: p.readString()),
            2: ("tags", TType.LIST, _list_of(_read_tag)),
        },
    )
    return WireProcess(**values)


def _read_batch(iprot) -> WireBatch:
    values = _read_struct(
        iprot,
        {
            1: ("process", TType.STRUCT, _read_process),
            2: ("spans", TType.LIST, _list_of(_read_span)),
        },
    )
    return WireBatch(**values)


def decode_batch(data: bytes, protocol: Union[Protocol, str] = Protocol.COMPACT) -> WireBatch:
    """
    Decode an emitBatch message back into wire records.

    This is the reference decoder, the inverse of ``encode_batch``. Unknown
    fields are skipped.

    Raises:
        DecodingFailed: If the bytes are not a well-formed emitBatch message
    """
    protocol = Protocol(protocol)
    try:
        iprot = _new_protocol(protocol, TMemoryBuffer(data))
        name, message_type, _seq_id = iprot.readMessageBegin()
        if name != EMIT_BATCH_METHOD or message_type != TMessageType.ONEWAY:
            raise DecodingFailed(
                "not an emitBatch message", {"method": name, "type": message_type}
            )
        args = _read_struct(iprot, {1: ("batch", TType.STRUCT, _read_batch)})
        iprot.readMessageEnd()
    except DecodingFailed:
        raise
    except _CODEC_ERRORS as e:
        raise DecodingFailed(
            "failed to decode emitBatch message",
            {"protocol": protocol.value, "size": len(data)},
            cause=e,
        ) from e

    if "batch" not in args:
        raise DecodingFailed("emitBatch message carries no batch")
    return args["batch"]
