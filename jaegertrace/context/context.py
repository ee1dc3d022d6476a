"""Context helpers for managing the active span - using OpenTelemetry's context API."""

from contextvars import Token
from typing import Optional, TYPE_CHECKING

from opentelemetry import context as context_api

if TYPE_CHECKING:
    from jaegertrace.tracer.span import Span

_ACTIVE_SPAN_KEY = context_api.create_key("jaegertrace-active-span")


def get_current_span() -> Optional["Span"]:
    """
    Return the currently active span, if any.

    The active span lives in OpenTelemetry's context (contextvars), so it
    follows the current thread or asyncio task.
    """
    return context_api.get_value(_ACTIVE_SPAN_KEY)


def push_span(span: "Span") -> Token:
    """
    Set a span as the current one.

    Returns:
        Token needed to restore the previous state
    """
    ctx = context_api.set_value(_ACTIVE_SPAN_KEY, span)
    return context_api.attach(ctx)


def pop_span(token: Token) -> None:
    """
    Restore the previous span context using the provided token.

    Args:
        token: Token returned by push_span()
    """
    context_api.detach(token)
