"""Span lifecycle: the mutable active span and its immutable finished snapshot."""

from __future__ import annotations

import time
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Tuple, Union

from jaegertrace.context.context import pop_span, push_span
from jaegertrace.tracer.span_context import SpanContext
from jaegertrace.utils.helpers import get_duration_ns, ns_to_us

if TYPE_CHECKING:
    from jaegertrace.tracer.channel import SpanSender


_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


def _utf8_safe(text: Any) -> str:
    """Return ``text`` as a str that encodes to UTF-8; lone surrogates become '?'."""
    text = str(text)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return text.encode("utf-8", "replace").decode("utf-8")
    return text


def _coerce_tag_value(value: Any) -> Any:
    """
    Convert a value to a wire-compatible tag value.

    Tag values must be: str, bool, int64, float or bytes. Anything else is
    stored as its string representation.
    """
    if isinstance(value, (bool, bytes, float)):
        return value
    if isinstance(value, str):
        return _utf8_safe(value)
    if isinstance(value, int):
        if _I64_MIN <= value <= _I64_MAX:
            return value
        return str(value)
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return _utf8_safe(value)


@dataclass(frozen=True)
class Tag:
    key: str
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _utf8_safe(self.key))
        object.__setattr__(self, "value", _coerce_tag_value(self.value))


@dataclass(frozen=True)
class Log:
    """A timestamped group of fields attached to a span."""

    timestamp_ns: int
    fields: Tuple[Tag, ...] = ()


class ReferenceKind(Enum):
    CHILD_OF = 0
    FOLLOWS_FROM = 1


@dataclass(frozen=True)
class SpanReference:
    kind: ReferenceKind
    context: SpanContext


@dataclass(frozen=True)
class FinishedSpan:
    """Immutable snapshot of a span, produced exactly once when it ends."""

    context: SpanContext
    operation_name: str
    start_time_ns: int
    end_time_ns: int
    tags: Tuple[Tag, ...] = ()
    logs: Tuple[Log, ...] = ()
    references: Tuple[SpanReference, ...] = ()

    @property
    def duration_ns(self) -> int:
        return self.end_time_ns - self.start_time_ns

    @property
    def start_time_us(self) -> int:
        return ns_to_us(self.start_time_ns)

    @property
    def duration_us(self) -> int:
        return ns_to_us(self.duration_ns)

    def get_tag(self, key: str) -> Optional[Any]:
        """Value of the last tag named ``key``; later duplicates win."""
        for tag in reversed(self.tags):
            if tag.key == key:
                return tag.value
        return None


LogFields = Union[Mapping[str, Any], Iterable[Tag]]


def _to_tags(fields: LogFields) -> Tuple[Tag, ...]:
    if isinstance(fields, Mapping):
        return tuple(Tag(k, v) for k, v in fields.items())
    return tuple(f if isinstance(f, Tag) else Tag(*f) for f in fields)


class Span:
    """
    An active span.

    Owned by whoever started it. Every mutator is a no-op once the span has
    ended, and ending twice does nothing, so a span is finished and enqueued
    exactly once. Use it as a (async) context manager to guarantee ``end()``
    runs on every exit path.
    """

    def __init__(
        self,
        context: SpanContext,
        operation_name: str,
        *,
        start_time_ns: Optional[int] = None,
        tags: Iterable[Tag] = (),
        references: Iterable[SpanReference] = (),
        sender: Optional["SpanSender"] = None,
    ) -> None:
        self.context = context
        self.operation_name = _utf8_safe(operation_name)
        self._explicit_start = start_time_ns is not None
        self.start_time_ns = start_time_ns if start_time_ns is not None else time.time_ns()
        self._start_monotonic_ns = time.monotonic_ns()
        self.end_time_ns: Optional[int] = None

        self._tags: List[Tag] = list(tags)
        self._logs: List[Log] = []
        self._references: Tuple[SpanReference, ...] = tuple(references)
        self._sender = sender
        self._ended = False
        self._activation_token = None

    @property
    def is_ended(self) -> bool:
        return self._ended

    @property
    def tags(self) -> List[Tag]:
        return list(self._tags)

    @property
    def logs(self) -> List[Log]:
        return list(self._logs)

    @property
    def references(self) -> Tuple[SpanReference, ...]:
        return self._references

    @property
    def duration_ns(self) -> Optional[int]:
        return get_duration_ns(self.start_time_ns, self.end_time_ns)

    def set_operation_name(self, name: str) -> None:
        if self._ended:
            return
        self.operation_name = _utf8_safe(name)

    def set_tag(self, key: str, value: Any) -> None:
        """Append a tag. Earlier tags with the same key are kept."""
        if self._ended:
            return
        self._tags.append(Tag(key, value))

    def add_tag(self, tag: Tag) -> None:
        if self._ended:
            return
        self._tags.append(tag)

    def log(self, fields: LogFields, timestamp_ns: Optional[int] = None) -> None:
        """Add a log entry made of ``fields`` (a mapping or Tags)."""
        if self._ended:
            return
        ts = timestamp_ns if timestamp_ns is not None else time.time_ns()
        self._logs.append(Log(timestamp_ns=ts, fields=_to_tags(fields)))

    def log_error(
        self,
        error: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> None:
        """Log an error event using the standard OpenTracing field names."""
        if self._ended:
            return
        fields = {"event": "error"}
        if error is not None:
            fields["error.kind"] = type(error).__name__
            fields["error.object"] = str(error)
            if error.__traceback__ is not None:
                fields["stack"] = "".join(traceback.format_tb(error.__traceback__))
        if message is not None:
            fields["message"] = message
        self.log(fields)

    def record_exception(self, error: BaseException) -> None:
        """Mark the span as failed and log the exception."""
        if self._ended:
            return
        self.set_tag("error", True)
        self.log_error(error)

    def set_baggage_item(self, key: str, value: str) -> None:
        if self._ended:
            return
        self.context = self.context.with_baggage_item(key, value)

    def baggage_item(self, key: str) -> Optional[str]:
        return self.context.baggage.get(key)

    def _default_end_time(self) -> int:
        if self._explicit_start:
            return time.time_ns()
        elapsed = time.monotonic_ns() - self._start_monotonic_ns
        return self.start_time_ns + elapsed

    def end(self, end_time_ns: Optional[int] = None) -> None:
        """
        End the span.

        Snapshots it into a FinishedSpan and hands it to the tracer's channel
        without blocking. If the channel is full or closed the span is dropped.
        """
        if self._ended:
            return
        self._ended = True

        if end_time_ns is None:
            end_time_ns = self._default_end_time()
        self.end_time_ns = max(end_time_ns, self.start_time_ns)

        finished = FinishedSpan(
            context=self.context,
            operation_name=self.operation_name,
            start_time_ns=self.start_time_ns,
            end_time_ns=self.end_time_ns,
            tags=tuple(self._tags),
            logs=tuple(self._logs),
            references=self._references,
        )
        if self._sender is not None:
            self._sender.try_send(finished)

    # Context manager support
    def __enter__(self) -> "Span":
        self._activation_token = push_span(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc:
                self.record_exception(exc)
            self.end()
        finally:
            if self._activation_token:
                pop_span(self._activation_token)
                self._activation_token = None
        return False

    async def __aenter__(self) -> "Span":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return self.__exit__(exc_type, exc, tb)

    def __repr__(self) -> str:
        return (
            f"Span(operation_name={self.operation_name!r}, "
            f"trace_id={self.context.trace_id}, span_id={self.context.span_id:x})"
        )
