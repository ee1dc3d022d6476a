"""Tests for jaeger.thrift emitBatch encoding."""

import pytest

from jaegertrace.constants import FLAG_SAMPLED
from jaegertrace.encoder import (
    Process,
    Protocol,
    SpanRefType,
    TagType,
    decode_batch,
    encode_batch,
    to_wire_tag,
)
from jaegertrace.errors import DecodingFailed, EncodingFailed
from jaegertrace.tracer import (
    FinishedSpan,
    Log,
    ReferenceKind,
    SpanContext,
    SpanReference,
    Tag,
    TraceId,
)
from jaegertrace.utils import to_signed_i64, to_unsigned_i64

# Spans ids above 2**63 exercise the signed i64 conversion
PARENT = SpanContext(trace_id=TraceId(high=0xFEDCBA9876543210, low=0x1), span_id=0x8000000000000001)


def _span(**kwargs):
    defaults = dict(
        context=SpanContext(
            trace_id=PARENT.trace_id,
            span_id=0xFFFFFFFFFFFFFFFF,
            parent_span_id=PARENT.span_id,
            flags=FLAG_SAMPLED,
        ),
        operation_name="GET /orders",
        start_time_ns=1_700_000_000_123_456_789,
        end_time_ns=1_700_000_000_125_457_788,
        tags=(
            Tag("http.method", "GET"),
            Tag("http.status_code", 200),
            Tag("error", False),
            Tag("ratio", 0.5),
            Tag("payload", b"\x00\x01"),
        ),
        logs=(Log(timestamp_ns=1_700_000_000_124_000_999, fields=(Tag("event", "cache miss"),)),),
        references=(SpanReference(ReferenceKind.CHILD_OF, PARENT),),
    )
    defaults.update(kwargs)
    return FinishedSpan(**defaults)


PROCESS = Process(service_name="orders", tags=(Tag("hostname", "host-1"), Tag("pid", 42)))


class TestEncodeBatch:
    @pytest.mark.parametrize("protocol", [Protocol.COMPACT, Protocol.BINARY])
    def test_encoding_is_deterministic(self, protocol):
        spans = [_span(), _span(operation_name="other")]
        assert encode_batch(PROCESS, spans, protocol) == encode_batch(PROCESS, spans, protocol)

    def test_compact_and_binary_differ(self):
        spans = [_span()]
        assert encode_batch(PROCESS, spans, "compact") != encode_batch(PROCESS, spans, "binary")

    @pytest.mark.parametrize("protocol", [Protocol.COMPACT, Protocol.BINARY])
    def test_decoded_fields_match(self, protocol):
        finished = _span()
        batch = decode_batch(encode_batch(PROCESS, [finished], protocol), protocol)

        assert batch.process.service_name == "orders"
        assert batch.process.tag_value("hostname") == "host-1"
        assert batch.process.tag_value("pid") == 42

        (span,) = batch.spans
        assert span.operation_name == "GET /orders"
        assert to_unsigned_i64(span.trace_id_high) == 0xFEDCBA9876543210
        assert span.trace_id_low == 1
        assert span.span_id == -1
        assert span.parent_span_id == to_signed_i64(PARENT.span_id)
        assert span.flags == FLAG_SAMPLED
        assert span.start_time == 1_700_000_000_123_456
        assert span.tag_value("http.method") == "GET"
        assert span.tag_value("http.status_code") == 200
        assert span.tag_value("error") is False
        assert span.tag_value("ratio") == 0.5
        assert span.tag_value("payload") == b"\x00\x01"

        (ref,) = span.references
        assert ref.ref_type is SpanRefType.CHILD_OF
        assert to_unsigned_i64(ref.span_id) == PARENT.span_id

        (log,) = span.logs
        assert log.timestamp == 1_700_000_000_124_000
        assert log.fields[0].key == "event"
        assert log.fields[0].value == "cache miss"

    def test_duration_truncates_to_microseconds(self):
        # 2_000_999 ns -> 2000 us, not 2001
        batch = decode_batch(encode_batch(PROCESS, [_span()]))
        assert batch.spans[0].duration == 2000

    def test_span_order_is_preserved(self):
        names = [f"op-{i}" for i in range(5)]
        spans = [_span(operation_name=n) for n in names]
        batch = decode_batch(encode_batch(PROCESS, spans))
        assert [s.operation_name for s in batch.spans] == names

    def test_empty_collections_and_root_parent(self):
        root = _span(
            context=SpanContext(trace_id=TraceId(0, 5), span_id=6),
            tags=(),
            logs=(),
            references=(),
        )
        (span,) = decode_batch(encode_batch(Process("svc"), [root])).spans
        assert span.parent_span_id == 0
        assert span.tags == []
        assert span.logs == []
        assert span.references == []

    def test_unmappable_span_raises_encoding_failed(self):
        with pytest.raises(EncodingFailed):
            encode_batch(PROCESS, [object()])

    def test_unknown_protocol_rejected(self):
        with pytest.raises(ValueError):
            encode_batch(PROCESS, [_span()], "json")


class TestWireTag:
    @pytest.mark.parametrize(
        "value, v_type",
        [
            ("s", TagType.STRING),
            (1.5, TagType.DOUBLE),
            (True, TagType.BOOL),
            (7, TagType.LONG),
            (b"raw", TagType.BINARY),
        ],
    )
    def test_tag_type_follows_value(self, value, v_type):
        wire = to_wire_tag(Tag("k", value))
        assert wire.v_type is v_type
        assert wire.value == value

    def test_out_of_range_int_becomes_string(self):
        wire = to_wire_tag(Tag("big", 1 << 70))
        assert wire.v_type is TagType.STRING
        assert wire.v_str == str(1 << 70)


class TestDecodeBatch:
    def test_garbage_raises_decoding_failed(self):
        with pytest.raises(DecodingFailed):
            decode_batch(b"\x01\x02\x03")

    def test_wrong_protocol_raises_decoding_failed(self):
        data = encode_batch(PROCESS, [_span()], Protocol.BINARY)
        with pytest.raises(DecodingFailed):
            decode_batch(data, Protocol.COMPACT)
