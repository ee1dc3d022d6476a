"""Jaeger trace context propagation (``uber-trace-id`` text carrier and binary carrier)."""

from __future__ import annotations

import re
import struct
from typing import Any, Dict, Optional
from urllib.parse import quote, unquote

from opentelemetry.propagators.textmap import (
    CarrierT,
    Getter,
    Setter,
    default_getter,
    default_setter,
)

from jaegertrace.constants import TRACER_BAGGAGE_HEADER_PREFIX, TRACER_CONTEXT_HEADER_NAME
from jaegertrace.errors import MalformedContext
from jaegertrace.tracer.span_context import SpanContext, TraceId
from jaegertrace.utils.helpers import (
    format_span_id,
    format_trace_id,
    parse_span_id,
    parse_trace_id,
)

_FLAGS_RE = re.compile(r"[0-9a-fA-F]{1,2}")
_BINARY_HEADER = struct.Struct(">QQQQBI")
_BINARY_LENGTH = struct.Struct(">I")


def format_trace_header(context: SpanContext) -> str:
    """
    Format the ``uber-trace-id`` header value.

    Format: ``{trace_id}:{span_id}:{parent_id}:{flags}``, all lowercase hex.
    Baggage is not part of this value.
    """
    return ":".join(
        (
            format_trace_id(context.trace_id.high, context.trace_id.low),
            format_span_id(context.span_id),
            format_span_id(context.parent_span_id or 0),
            format(context.flags, "x"),
        )
    )


def parse_trace_header(header_value: str) -> SpanContext:
    """
    Parse an ``uber-trace-id`` header value into a SpanContext.

    Raises:
        MalformedContext: If the value does not have exactly four fields of
            the expected hex widths, or has a zero trace id or span id
    """
    value = unquote(header_value or "").strip()
    parts = value.split(":")
    if len(parts) != 4:
        raise MalformedContext(
            "trace header must have 4 fields",
            {"header": TRACER_CONTEXT_HEADER_NAME, "value": header_value, "fields": len(parts)},
        )
    trace_hex, span_hex, parent_hex, flags_hex = parts
    try:
        high, low = parse_trace_id(trace_hex)
        span_id = parse_span_id(span_hex)
        parent_id = parse_span_id(parent_hex)
        if not _FLAGS_RE.fullmatch(flags_hex):
            raise ValueError(f"invalid flags: {flags_hex!r}")
        flags = int(flags_hex, 16)
    except ValueError as e:
        raise MalformedContext(
            "unparseable trace header",
            {"header": TRACER_CONTEXT_HEADER_NAME, "value": header_value},
            cause=e,
        ) from e

    if high == 0 and low == 0:
        raise MalformedContext("trace id must not be zero", {"value": header_value})
    if span_id == 0:
        raise MalformedContext("span id must not be zero", {"value": header_value})

    return SpanContext(
        trace_id=TraceId(high=high, low=low),
        span_id=span_id,
        parent_span_id=parent_id or None,
        flags=flags,
    )


def inject_into_carrier(
    context: SpanContext,
    carrier: CarrierT,
    setter: Setter = default_setter,
) -> None:
    """
    Write the span context into a string-keyed carrier.

    Sets the ``uber-trace-id`` field plus one ``uberctx-{key}`` field per
    baggage item. Works for any carrier the setter understands (HTTP headers,
    message-queue metadata, plain dicts).
    """
    setter.set(carrier, TRACER_CONTEXT_HEADER_NAME, format_trace_header(context))
    for key, value in context.baggage.items():
        setter.set(carrier, f"{TRACER_BAGGAGE_HEADER_PREFIX}{key}", quote(value, safe=""))


def _first_value(getter: Getter, carrier: CarrierT, key: str) -> Optional[str]:
    values = getter.get(carrier, key)
    if not values:
        return None
    return values[0]


def extract_from_carrier(
    carrier: CarrierT,
    getter: Getter = default_getter,
) -> SpanContext:
    """
    Extract a span context from a string-keyed carrier.

    Field names are matched case-insensitively. Extraction is all-or-nothing:
    either a fully populated context is returned or MalformedContext is raised.

    Raises:
        MalformedContext: If the trace header is absent or unparseable
    """
    header_value = None
    baggage: Dict[str, str] = {}
    prefix_len = len(TRACER_BAGGAGE_HEADER_PREFIX)

    for key in getter.keys(carrier):
        lowered = key.lower()
        if lowered == TRACER_CONTEXT_HEADER_NAME:
            header_value = _first_value(getter, carrier, key)
        elif lowered.startswith(TRACER_BAGGAGE_HEADER_PREFIX) and len(lowered) > prefix_len:
            value = _first_value(getter, carrier, key)
            if value is not None:
                baggage[key[prefix_len:]] = unquote(value)

    if header_value is None:
        raise MalformedContext(
            "trace header not found", {"header": TRACER_CONTEXT_HEADER_NAME}
        )

    context = parse_trace_header(header_value)
    if baggage:
        context = SpanContext(
            trace_id=context.trace_id,
            span_id=context.span_id,
            parent_span_id=context.parent_span_id,
            flags=context.flags,
            baggage=baggage,
        )
    return context


def inject_into_binary(context: SpanContext) -> bytes:
    """
    Serialize a span context into the Jaeger binary carrier layout.

    Layout (big-endian): trace id high u64, trace id low u64, span id u64,
    parent id u64, flags u8, baggage count u32, then for each item a u32
    length-prefixed key followed by a u32 length-prefixed value.
    """
    chunks = [
        _BINARY_HEADER.pack(
            context.trace_id.high,
            context.trace_id.low,
            context.span_id,
            context.parent_span_id or 0,
            context.flags & 0xFF,
            len(context.baggage),
        )
    ]
    for key, value in context.baggage.items():
        for item in (key.encode("utf-8"), value.encode("utf-8")):
            chunks.append(_BINARY_LENGTH.pack(len(item)))
            chunks.append(item)
    return b"".join(chunks)


def extract_from_binary(data: bytes) -> SpanContext:
    """
    Parse a span context written by ``inject_into_binary``.

    Raises:
        MalformedContext: On truncated input, trailing bytes, zero ids or
            undecodable baggage
    """
    try:
        high, low, span_id, parent_id, flags, count = _BINARY_HEADER.unpack_from(data, 0)
        offset = _BINARY_HEADER.size
        baggage: Dict[str, str] = {}
        for _ in range(count):
            items = []
            for _ in range(2):
                (length,) = _BINARY_LENGTH.unpack_from(data, offset)
                offset += _BINARY_LENGTH.size
                if offset + length > len(data):
                    raise ValueError("baggage item exceeds input")
                items.append(bytes(data[offset:offset + length]).decode("utf-8"))
                offset += length
            baggage[items[0]] = items[1]
    except (struct.error, ValueError) as e:
        raise MalformedContext("unparseable binary span context", cause=e) from e

    if offset != len(data):
        raise MalformedContext(
            "trailing bytes after binary span context", {"extra": len(data) - offset}
        )
    if high == 0 and low == 0:
        raise MalformedContext("trace id must not be zero")
    if span_id == 0:
        raise MalformedContext("span id must not be zero")

    return SpanContext(
        trace_id=TraceId(high=high, low=low),
        span_id=span_id,
        parent_span_id=parent_id or None,
        flags=flags,
        baggage=baggage,
    )


def try_extract_from_carrier(carrier: Any, getter: Getter = default_getter) -> Optional[SpanContext]:
    """Like ``extract_from_carrier`` but returns None instead of raising."""
    try:
        return extract_from_carrier(carrier, getter)
    except MalformedContext:
        return None
