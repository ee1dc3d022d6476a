"""Context utilities for the tracing SDK."""

from jaegertrace.context.context import get_current_span, pop_span, push_span
from jaegertrace.context.propagators import (
    extract_from_binary,
    extract_from_carrier,
    format_trace_header,
    inject_into_binary,
    inject_into_carrier,
    parse_trace_header,
    try_extract_from_carrier,
)

__all__ = [
    "get_current_span",
    "push_span",
    "pop_span",
    "format_trace_header",
    "parse_trace_header",
    "inject_into_carrier",
    "extract_from_carrier",
    "try_extract_from_carrier",
    "inject_into_binary",
    "extract_from_binary",
]
