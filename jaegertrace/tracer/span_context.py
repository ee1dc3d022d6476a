"""Immutable trace metadata."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from opentelemetry.sdk.trace.id_generator import RandomIdGenerator

from jaegertrace.constants import FLAG_DEBUG, FLAG_SAMPLED
from jaegertrace.utils.helpers import format_trace_id

_id_generator = RandomIdGenerator()


@dataclass(frozen=True)
class TraceId:
    """128-bit trace id held as two unsigned 64-bit halves."""

    high: int = 0
    low: int = 0

    @classmethod
    def generate(cls) -> "TraceId":
        value = _id_generator.generate_trace_id()
        return cls(high=value >> 64, low=value & 0xFFFFFFFFFFFFFFFF)

    def __str__(self) -> str:
        return format_trace_id(self.high, self.low)


def generate_span_id() -> int:
    return _id_generator.generate_span_id()


@dataclass(frozen=True)
class SpanContext:
    trace_id: TraceId
    span_id: int
    parent_span_id: Optional[int] = None
    flags: int = FLAG_SAMPLED  # bit 0 = sampled, bit 1 = debug
    baggage: Dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def is_sampled(self) -> bool:
        return bool(self.flags & FLAG_SAMPLED)

    @property
    def is_debug(self) -> bool:
        return bool(self.flags & FLAG_DEBUG)

    def is_valid(self) -> bool:
        return bool((self.trace_id.high or self.trace_id.low) and self.span_id)

    def with_baggage_item(self, key: str, value: str) -> "SpanContext":
        baggage = dict(self.baggage)
        baggage[key] = value
        return replace(self, baggage=baggage)
