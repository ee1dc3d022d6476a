"""HTTP server helpers for extracting context and creating server spans."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from jaegertrace.context import extract_from_carrier
from jaegertrace.errors import MalformedContext
from jaegertrace.tracer.span import Span, Tag
from jaegertrace.tracer.span_context import SpanContext
from jaegertrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


def extract_parent_context(headers: Mapping[str, str]) -> Optional[SpanContext]:
    """Parse ``uber-trace-id`` and baggage from headers; None if absent or malformed."""
    try:
        return extract_from_carrier(headers)
    except MalformedContext as e:
        logger.debug("no usable parent context in request headers: %s", e)
        return None


def start_server_span(
    tracer: Tracer,
    name: str,
    headers: Mapping[str, str],
    tags: Optional[Mapping[str, Any]] = None,
) -> Span:
    """
    Start a server span continuing the caller's trace.

    Falls back to a new root span when the headers carry no valid context.
    Returns the started span (use it with ``with`` or ``async with``).
    """
    builder = tracer.span(name).child_of(extract_parent_context(headers))
    builder = builder.tag(Tag("span.kind", "server"))
    for key, value in (tags or {}).items():
        builder = builder.tag(Tag(key, value))
    return builder.start()
