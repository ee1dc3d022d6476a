"""Tracer: starts spans, applies the sampler, and feeds finished spans into a channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple, Union

from jaegertrace.constants import FLAG_SAMPLED
from jaegertrace.context.context import get_current_span
from jaegertrace.processors.drop_policy import DropPolicy
from jaegertrace.processors.sampler import AllSampler, Sampler
from jaegertrace.tracer.channel import DEFAULT_CAPACITY, SpanReceiver, SpanSender, channel
from jaegertrace.tracer.span import ReferenceKind, Span, SpanReference, Tag
from jaegertrace.tracer.span_context import SpanContext, TraceId, generate_span_id

logger = logging.getLogger(__name__)

ParentLike = Union[Span, SpanContext, None]


def _context_of(parent: ParentLike) -> Optional[SpanContext]:
    if parent is None:
        return None
    if isinstance(parent, Span):
        return parent.context
    return parent


@dataclass(frozen=True)
class SpanOptions:
    """Everything needed to start one span."""

    operation_name: str
    references: Tuple[SpanReference, ...] = ()
    tags: Tuple[Tag, ...] = ()
    start_time_ns: Optional[int] = None


class SpanBuilder:
    """
    Fluent, immutable span configuration.

    Every call returns a new builder, so a partially configured builder can
    be shared between threads and reused.
    """

    def __init__(self, tracer: "Tracer", options: SpanOptions) -> None:
        self._tracer = tracer
        self.options = options

    def _with(self, **changes) -> "SpanBuilder":
        return SpanBuilder(self._tracer, replace(self.options, **changes))

    def _reference(self, kind: ReferenceKind, parent: ParentLike) -> "SpanBuilder":
        context = _context_of(parent)
        if context is None:
            return self
        ref = SpanReference(kind=kind, context=context)
        return self._with(references=self.options.references + (ref,))

    def child_of(self, parent: ParentLike) -> "SpanBuilder":
        """Add a CHILD_OF reference. ``None`` is ignored."""
        return self._reference(ReferenceKind.CHILD_OF, parent)

    def follows_from(self, parent: ParentLike) -> "SpanBuilder":
        """Add a FOLLOWS_FROM reference. ``None`` is ignored."""
        return self._reference(ReferenceKind.FOLLOWS_FROM, parent)

    def child_of_current(self) -> "SpanBuilder":
        """Add a CHILD_OF reference to the active span, if there is one."""
        return self.child_of(get_current_span())

    def tag(self, tag: Tag) -> "SpanBuilder":
        return self._with(tags=self.options.tags + (tag,))

    def start_time(self, start_time_ns: int) -> "SpanBuilder":
        return self._with(start_time_ns=start_time_ns)

    def start(self) -> Span:
        return self._tracer.start_span(self.options)


class Tracer:
    """
    Starts spans and hands finished ones to a channel.

    A Tracer is a cheap, thread-safe handle: clones share the sampler and the
    channel, and any number of threads may start and end spans concurrently.
    """

    def __init__(self, sampler: Optional[Sampler], sender: SpanSender) -> None:
        self.sampler = sampler or AllSampler()
        self._sender = sender

    @classmethod
    def new(
        cls,
        sampler: Optional[Sampler] = None,
        capacity: int = DEFAULT_CAPACITY,
        drop_policy: Optional[DropPolicy] = None,
    ) -> Tuple["Tracer", SpanReceiver]:
        """Create a tracer together with the receiver its finished spans arrive on."""
        sender, receiver = channel(capacity, drop_policy)
        return cls(sampler, sender), receiver

    def clone(self) -> "Tracer":
        return Tracer(self.sampler, self._sender)

    @property
    def dropped_count(self) -> int:
        return self._sender.dropped_count

    def span(self, operation_name: str) -> SpanBuilder:
        return SpanBuilder(self, SpanOptions(operation_name=operation_name))

    def start_span(self, options: SpanOptions) -> Span:
        """
        Start a span from options. Never raises.

        With references, the first one fixes the trace id and flags; the
        parent is the first CHILD_OF reference (else the first reference);
        baggage is merged from all references. Without references a new trace
        id is generated and the sampler decides the sampled flag.
        """
        references = options.references
        if references:
            first = references[0].context
            parent = next(
                (r.context for r in references if r.kind is ReferenceKind.CHILD_OF),
                first,
            )
            baggage: Dict[str, str] = {}
            for ref in references:
                baggage.update(ref.context.baggage)
            context = SpanContext(
                trace_id=first.trace_id,
                span_id=generate_span_id(),
                parent_span_id=parent.span_id,
                flags=first.flags,
                baggage=baggage,
            )
        else:
            sampled = self._should_sample(options)
            context = SpanContext(
                trace_id=TraceId.generate(),
                span_id=generate_span_id(),
                flags=FLAG_SAMPLED if sampled else 0,
            )

        return Span(
            context,
            options.operation_name,
            start_time_ns=options.start_time_ns,
            tags=options.tags,
            references=references,
            sender=self._sender,
        )

    def _should_sample(self, options: SpanOptions) -> bool:
        try:
            return bool(self.sampler.should_sample(options.operation_name, options.tags).sampled)
        except Exception:
            # Sampler failures must not break instrumented code
            logger.debug(
                "sampler %r failed for '%s' - trace not sampled",
                self.sampler,
                options.operation_name,
                exc_info=True,
            )
            return False
