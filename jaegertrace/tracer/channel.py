"""Bounded multi-producer/single-consumer channel carrying finished spans."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Deque, Iterator, List, Optional, Tuple

from jaegertrace.processors.drop_policy import DEFAULT_DROP_POLICY, DropPolicy
from jaegertrace.tracer.span import FinishedSpan

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10000


class _SpanQueue:
    def __init__(self, capacity: int, drop_policy: DropPolicy) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.drop_policy = drop_policy
        self.items: Deque[FinishedSpan] = deque()
        self.cond = threading.Condition(threading.Lock())
        self.closed = False
        self.dropped = 0


class SpanSender:
    """Producer side of the channel. Shared by every clone of a Tracer."""

    def __init__(self, queue: _SpanQueue) -> None:
        self._queue = queue

    def try_send(self, span: FinishedSpan) -> bool:
        """
        Enqueue a span without blocking.

        Returns False when the span was dropped because the channel is full
        or the receiver is closed. With DropOldestPolicy an older span is
        evicted instead; that eviction is counted in ``dropped_count``.
        Never raises.
        """
        q = self._queue
        with q.cond:
            if q.closed:
                q.dropped += 1
                logger.debug("span receiver closed - dropping span '%s'", span.operation_name)
                return False
            enqueued, dropped = q.drop_policy.handle(q.items, span, q.capacity)
            if dropped:
                q.dropped += dropped
                logger.debug(
                    "span channel full (capacity=%d) - dropped %d span(s). Total dropped: %d",
                    q.capacity,
                    dropped,
                    q.dropped,
                )
            if enqueued:
                q.cond.notify()
            return enqueued

    @property
    def dropped_count(self) -> int:
        with self._queue.cond:
            return self._queue.dropped

    @property
    def is_closed(self) -> bool:
        return self._queue.closed


class SpanReceiver:
    """Consumer side of the channel. Exactly one consumer should drain it."""

    def __init__(self, queue: _SpanQueue) -> None:
        self._queue = queue

    def __len__(self) -> int:
        with self._queue.cond:
            return len(self._queue.items)

    @property
    def dropped_count(self) -> int:
        with self._queue.cond:
            return self._queue.dropped

    @property
    def closed(self) -> bool:
        return self._queue.closed

    def try_recv(self) -> Optional[FinishedSpan]:
        with self._queue.cond:
            if self._queue.items:
                return self._queue.items.popleft()
            return None

    def recv(self, timeout: Optional[float] = None) -> Optional[FinishedSpan]:
        """
        Wait for the next span.

        Returns None on timeout, or once the receiver is closed and empty.
        """
        q = self._queue
        deadline = time.monotonic() + timeout if timeout is not None else None
        with q.cond:
            while not q.items:
                if q.closed:
                    return None
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                q.cond.wait(remaining)
            return q.items.popleft()

    def recv_many(self, limit: int, timeout: Optional[float] = None) -> List[FinishedSpan]:
        """
        Wait for at least one span, then take up to ``limit`` without waiting.

        Returns an empty list on timeout or when closed and empty.
        """
        first = self.recv(timeout)
        if first is None:
            return []
        spans = [first]
        with self._queue.cond:
            while self._queue.items and len(spans) < limit:
                spans.append(self._queue.items.popleft())
        return spans

    def close(self) -> None:
        """Stop accepting spans. Spans already queued can still be received."""
        with self._queue.cond:
            self._queue.closed = True
            self._queue.cond.notify_all()

    def __iter__(self) -> Iterator[FinishedSpan]:
        while True:
            span = self.recv()
            if span is None:
                return
            yield span


def channel(
    capacity: int = DEFAULT_CAPACITY,
    drop_policy: Optional[DropPolicy] = None,
) -> Tuple[SpanSender, SpanReceiver]:
    """Create a bounded span channel and return its two ends."""
    queue = _SpanQueue(capacity, drop_policy or DEFAULT_DROP_POLICY)
    return SpanSender(queue), SpanReceiver(queue)
