"""Helper functions for id formatting and wire conversions."""

from __future__ import annotations

import re
from typing import Optional

_U64 = 1 << 64
_I64_MAX = (1 << 63) - 1

_HEX_RE = {
    16: re.compile(r"[0-9a-fA-F]{1,16}"),
    32: re.compile(r"[0-9a-fA-F]{1,32}"),
}


def format_span_id(span_id: int) -> str:
    """
    Format a 64-bit span id as lowercase hex without padding.

    Args:
        span_id: Unsigned 64-bit span id

    Returns:
        Hex string (1-16 characters)
    """
    return format(span_id, "x")


def parse_span_id(hex_string: str) -> int:
    """
    Parse a span id from 1-16 hex digits.

    Raises:
        ValueError: If the string is not 1-16 hex digits
    """
    if not hex_string or not _HEX_RE[16].fullmatch(hex_string):
        raise ValueError(f"invalid span id: {hex_string!r}")
    return int(hex_string, 16)


def format_trace_id(high: int, low: int) -> str:
    """
    Format a 128-bit trace id given as two 64-bit halves.

    The high half is omitted when zero, matching the Jaeger text form.
    """
    if high == 0:
        return format(low, "x")
    return f"{high:x}{low:016x}"


def parse_trace_id(hex_string: str) -> tuple:
    """
    Parse a trace id from 1-32 hex digits into ``(high, low)``.

    Raises:
        ValueError: If the string is not 1-32 hex digits
    """
    if not hex_string or not _HEX_RE[32].fullmatch(hex_string):
        raise ValueError(f"invalid trace id: {hex_string!r}")
    if len(hex_string) <= 16:
        return 0, int(hex_string, 16)
    return int(hex_string[:-16], 16), int(hex_string[-16:], 16)


def to_signed_i64(value: int) -> int:
    """Reinterpret an unsigned 64-bit value as a signed Thrift i64."""
    value &= _U64 - 1
    return value - _U64 if value > _I64_MAX else value


def to_unsigned_i64(value: int) -> int:
    """Reinterpret a signed Thrift i64 as an unsigned 64-bit value."""
    return value & (_U64 - 1)


def ns_to_us(value_ns: int) -> int:
    """Nanoseconds to microseconds, truncating."""
    return value_ns // 1000


def get_duration_ns(start_time_ns: int, end_time_ns: Optional[int]) -> Optional[int]:
    """
    Get a duration in nanoseconds.

    Returns:
        ``end - start``, or None if the end time is unknown
    """
    if end_time_ns is None:
        return None
    return end_time_ns - start_time_ns
