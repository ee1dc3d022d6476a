"""Background drain loop batching finished spans into reporter calls."""

from __future__ import annotations

import errno
import logging
import threading
import time
from typing import TYPE_CHECKING, List, Optional

from jaegertrace.errors import EncodingFailed, TransportFailed

if TYPE_CHECKING:
    from jaegertrace.reporter.udp_reporter import Reporter
    from jaegertrace.tracer.channel import SpanReceiver
    from jaegertrace.tracer.span import FinishedSpan

logger = logging.getLogger(__name__)


class BatchReportProcessor:
    """
    Drains a span receiver on a daemon thread and reports spans in batches.

    Every ``schedule_delay_millis`` the worker takes whatever is queued, in
    chunks of at most ``max_batch_size`` spans, and hands each chunk to
    ``reporter.report``. Reporter errors never stop the worker:

    * a batch too large for one datagram is split in halves and retried
    * other transport errors are logged at WARNING and the batch is dropped
    * encoding errors are logged at ERROR and the batch is dropped
    """

    def __init__(
        self,
        receiver: "SpanReceiver",
        reporter: "Reporter",
        max_batch_size: int = 100,
        schedule_delay_millis: int = 1000,
    ) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        self.receiver = receiver
        self.reporter = reporter
        self.max_batch_size = max_batch_size
        self.schedule_delay = schedule_delay_millis / 1000.0

        self._flush_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._reported = 0
        self._failed = 0
        self._event = threading.Event()
        self._shutdown = False
        self._worker = threading.Thread(
            target=self._worker_loop, name="jaegertrace-reporter", daemon=True
        )
        self._worker.start()

    @property
    def reported_count(self) -> int:
        """Spans handed to the reporter without error."""
        with self._stats_lock:
            return self._reported

    @property
    def failed_count(self) -> int:
        """Spans dropped because their batch could not be reported."""
        with self._stats_lock:
            return self._failed

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        """
        Report everything currently queued.

        Returns True once the receiver is empty, False if ``timeout`` seconds
        passed first.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            if not self._flush_once():
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return len(self.receiver) == 0

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Close the receiver, report what is left and stop the worker."""
        if self._shutdown:
            return
        self._shutdown = True
        self.receiver.close()
        self._event.set()
        self._worker.join(timeout=self.schedule_delay * 2)
        self.force_flush(timeout)

    # Internal
    def _worker_loop(self) -> None:
        while not self._shutdown:
            self._event.wait(timeout=self.schedule_delay)
            self._event.clear()
            while not self._shutdown and self._flush_once():
                pass

    def _flush_once(self) -> bool:
        with self._flush_lock:
            spans = self.receiver.recv_many(self.max_batch_size, timeout=0)
            if not spans:
                return False
            self._report(spans)
            return True

    def _report(self, spans: List["FinishedSpan"]) -> None:
        try:
            self.reporter.report(spans)
        except TransportFailed as e:
            if e.errno == errno.EMSGSIZE and len(spans) > 1:
                mid = len(spans) // 2
                logger.debug(
                    "batch of %d spans too large for one datagram - splitting", len(spans)
                )
                self._report(spans[:mid])
                self._report(spans[mid:])
                return
            logger.warning("dropping %d spans: %s", len(spans), e)
            self._count_failed(len(spans))
        except EncodingFailed:
            logger.error("dropping %d spans that could not be encoded", len(spans), exc_info=True)
            self._count_failed(len(spans))
        except Exception:
            # The worker must survive a misbehaving reporter
            logger.exception("unexpected error reporting %d spans", len(spans))
            self._count_failed(len(spans))
        else:
            with self._stats_lock:
                self._reported += len(spans)

    def _count_failed(self, n: int) -> None:
        with self._stats_lock:
            self._failed += n
