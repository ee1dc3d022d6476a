"""HTTP client helpers for context propagation."""

from __future__ import annotations

from typing import Dict, Optional

from jaegertrace.context import get_current_span, inject_into_carrier
from jaegertrace.tracer.span import Span


def inject_headers(headers: Dict[str, str], span: Optional[Span] = None) -> Dict[str, str]:
    """
    Inject ``uber-trace-id`` (and baggage) for ``span`` or the active span.

    Headers are left untouched when there is no span. Returns the same
    headers mapping for convenience.
    """
    span = span or get_current_span()
    if span is not None:
        inject_into_carrier(span.context, headers)
    return headers
