"""Utility functions for jaegertrace."""

from jaegertrace.utils.helpers import (
    format_span_id,
    format_trace_id,
    get_duration_ns,
    ns_to_us,
    parse_span_id,
    parse_trace_id,
    to_signed_i64,
    to_unsigned_i64,
)

__all__ = [
    "format_span_id",
    "format_trace_id",
    "get_duration_ns",
    "ns_to_us",
    "parse_span_id",
    "parse_trace_id",
    "to_signed_i64",
    "to_unsigned_i64",
]
