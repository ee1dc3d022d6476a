"""@traced decorator for instrumenting functions."""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from jaegertrace.tracer.span import Span, Tag
from jaegertrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

_MAX_ARG_LENGTH = 1000


def _capture_args(bound_args: inspect.BoundArguments, skip: Iterable[str]) -> Dict[str, Any]:
    """Capture call arguments as ``arg.<name>`` tag values."""
    captured = {}
    for name, value in bound_args.arguments.items():
        if name in skip or name in ("self", "cls"):
            continue
        captured[f"arg.{name}"] = _to_tag_value(value)
    return captured


def _to_tag_value(value: Any) -> Any:
    if isinstance(value, (bool, str, bytes, int, float)):
        return value
    return repr(value)[:_MAX_ARG_LENGTH]


def _resolve_tracer(tracer: Optional[Tracer]) -> Optional[Tracer]:
    if tracer is not None:
        return tracer
    from jaegertrace.bootstrap import get_tracer

    return get_tracer()


def traced(
    tracer: Optional[Tracer] = None,
    name: Optional[str] = None,
    tags: Optional[Mapping[str, Any]] = None,
    *,
    capture_args: bool = False,
    skip_args: Optional[Iterable[str]] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorate a function to run it inside a span.

    - Supports sync and async functions.
    - The span is a child of the active span, if any, and is active while
      the function runs.
    - Exceptions are recorded on the span and re-raised.
    - Without ``tracer`` the one created by ``init()`` is looked up per call;
      if tracing is not initialised the function runs untraced.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or func.__qualname__
        skip_args_set = set(skip_args or [])
        signature = inspect.signature(func) if capture_args else None

        def start(args, kwargs) -> Optional[Span]:
            active = _resolve_tracer(tracer)
            if active is None:
                logger.debug("tracing not initialised - '%s' runs untraced", span_name)
                return None
            builder = active.span(span_name).child_of_current()
            span_tags = dict(tags or {})
            if signature is not None:
                bound = signature.bind_partial(*args, **kwargs)
                bound.apply_defaults()
                span_tags.update(_capture_args(bound, skip_args_set))
            for key, value in span_tags.items():
                builder = builder.tag(Tag(key, value))
            return builder.start()

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            span = start(args, kwargs)
            if span is None:
                return func(*args, **kwargs)
            with span:
                return func(*args, **kwargs)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            span = start(args, kwargs)
            if span is None:
                return await func(*args, **kwargs)
            async with span:
                return await func(*args, **kwargs)

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator
