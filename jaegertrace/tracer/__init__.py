"""Tracer components for the tracing SDK."""

from jaegertrace.tracer.span_context import SpanContext, TraceId
from jaegertrace.tracer.span import (
    FinishedSpan,
    Log,
    ReferenceKind,
    Span,
    SpanReference,
    Tag,
)
from jaegertrace.tracer.channel import SpanReceiver, SpanSender, channel
from jaegertrace.tracer.tracer import SpanBuilder, SpanOptions, Tracer

__all__ = [
    "FinishedSpan",
    "Log",
    "ReferenceKind",
    "Span",
    "SpanBuilder",
    "SpanContext",
    "SpanOptions",
    "SpanReceiver",
    "SpanReference",
    "SpanSender",
    "Tag",
    "TraceId",
    "Tracer",
    "channel",
]
