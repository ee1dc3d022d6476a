"""Overflow policies for the bounded span channel."""

from typing import TYPE_CHECKING, Deque, NamedTuple

if TYPE_CHECKING:
    from jaegertrace.tracer.span import FinishedSpan


class Admission(NamedTuple):
    enqueued: bool  # the incoming span is now in the queue
    dropped: int  # spans lost by this call, incoming or evicted


class DropPolicy:
    """Decides which span gives way when the channel is at capacity."""

    def handle(self, queue: Deque["FinishedSpan"], span: "FinishedSpan", capacity: int) -> Admission:
        """Offer ``span`` to ``queue``. Called with the channel lock held."""
        raise NotImplementedError


class DropOldestPolicy(DropPolicy):
    """Evict the oldest queued span so the newest always gets in."""

    def handle(self, queue: Deque["FinishedSpan"], span: "FinishedSpan", capacity: int) -> Admission:
        evicted = 0
        while queue and len(queue) >= capacity:
            queue.popleft()
            evicted += 1
        queue.append(span)
        return Admission(enqueued=True, dropped=evicted)


class DropNewestPolicy(DropPolicy):
    """Reject the incoming span; queued spans are never touched."""

    def handle(self, queue: Deque["FinishedSpan"], span: "FinishedSpan", capacity: int) -> Admission:
        if len(queue) >= capacity:
            return Admission(enqueued=False, dropped=1)
        queue.append(span)
        return Admission(enqueued=True, dropped=0)


DEFAULT_DROP_POLICY = DropNewestPolicy()
