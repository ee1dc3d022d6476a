"""
Wire records of the jaeger.thrift schema.

Field ids and types follow ``jaeger.thrift`` / ``agent.thrift`` as accepted
by the Jaeger agent. All 64-bit ids are signed i64 values, as Thrift has no
unsigned integers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

from jaegertrace.tracer.span import Tag


class TagType(IntEnum):
    STRING = 0
    DOUBLE = 1
    BOOL = 2
    LONG = 3
    BINARY = 4


class SpanRefType(IntEnum):
    CHILD_OF = 0
    FOLLOWS_FROM = 1


@dataclass(frozen=True)
class Process:
    """Reporter-level metadata sent with every batch."""

    service_name: str
    tags: Tuple[Tag, ...] = ()


@dataclass
class WireTag:
    key: str
    v_type: TagType
    v_str: Optional[str] = None
    v_double: Optional[float] = None
    v_bool: Optional[bool] = None
    v_long: Optional[int] = None
    v_binary: Optional[bytes] = None

    @property
    def value(self):
        return {
            TagType.STRING: self.v_str,
            TagType.DOUBLE: self.v_double,
            TagType.BOOL: self.v_bool,
            TagType.LONG: self.v_long,
            TagType.BINARY: self.v_binary,
        }[self.v_type]


@dataclass
class WireLog:
    timestamp: int  # microseconds since epoch
    fields: List[WireTag] = field(default_factory=list)


@dataclass
class WireSpanRef:
    ref_type: SpanRefType
    trace_id_low: int
    trace_id_high: int
    span_id: int


@dataclass
class WireSpan:
    trace_id_low: int
    trace_id_high: int
    span_id: int
    parent_span_id: int
    operation_name: str
    flags: int
    start_time: int  # microseconds since epoch
    duration: int  # microseconds
    references: Optional[List[WireSpanRef]] = None
    tags: Optional[List[WireTag]] = None
    logs: Optional[List[WireLog]] = None

    def tag_value(self, key: str):
        """Value of the last tag named ``key``, or None."""
        for tag in reversed(self.tags or []):
            if tag.key == key:
                return tag.value
        return None


@dataclass
class WireProcess:
    service_name: str
    tags: Optional[List[WireTag]] = None

    def tag_value(self, key: str):
        for tag in reversed(self.tags or []):
            if tag.key == key:
                return tag.value
        return None


@dataclass
class WireBatch:
    process: WireProcess
    spans: List[WireSpan] = field(default_factory=list)
