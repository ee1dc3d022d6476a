"""Tests for the tracer, spans and the span channel."""

import asyncio
import threading
import time

import pytest

from jaegertrace.constants import FLAG_DEBUG, FLAG_SAMPLED
from jaegertrace.context import get_current_span
from jaegertrace.processors import (
    AllSampler,
    DropOldestPolicy,
    NullSampler,
    ProbabilisticSampler,
    Sampler,
)
from jaegertrace.tracer import (
    ReferenceKind,
    SpanContext,
    Tag,
    TraceId,
    Tracer,
    channel,
)


class TestSpanIdentity:
    def test_root_span_gets_new_trace_and_no_parent(self):
        tracer, _ = Tracer.new()
        a = tracer.span("a").start()
        b = tracer.span("b").start()
        assert a.context.parent_span_id is None
        assert a.context.trace_id != b.context.trace_id
        assert a.context.is_valid()

    def test_child_inherits_trace_and_flags(self):
        tracer, _ = Tracer.new()
        parent_ctx = SpanContext(trace_id=TraceId(1, 2), span_id=3, flags=FLAG_SAMPLED | FLAG_DEBUG)
        child = tracer.span("child").child_of(parent_ctx).start()
        assert child.context.trace_id == TraceId(1, 2)
        assert child.context.parent_span_id == 3
        assert child.context.is_debug
        assert child.context.span_id != 3

    def test_child_of_none_starts_root(self):
        tracer, _ = Tracer.new()
        span = tracer.span("root").child_of(None).start()
        assert span.context.parent_span_id is None
        assert span.references == ()

    def test_follows_from_and_child_of_prefers_child_of_parent(self):
        tracer, _ = Tracer.new()
        first = SpanContext(trace_id=TraceId(0, 9), span_id=1)
        second = SpanContext(trace_id=TraceId(0, 9), span_id=2)
        span = tracer.span("x").follows_from(first).child_of(second).start()
        assert span.context.parent_span_id == 2
        assert [r.kind for r in span.references] == [ReferenceKind.FOLLOWS_FROM, ReferenceKind.CHILD_OF]

    def test_baggage_is_inherited(self):
        tracer, _ = Tracer.new()
        parent = tracer.span("p").start()
        parent.set_baggage_item("user", "42")
        child = tracer.span("c").child_of(parent).start()
        assert child.baggage_item("user") == "42"

    def test_builder_is_immutable(self):
        tracer, _ = Tracer.new()
        base = tracer.span("op")
        tagged = base.tag(Tag("k", "v"))
        assert base.start().tags == []
        assert [t.key for t in tagged.start().tags] == ["k"]

    def test_child_of_current(self):
        tracer, receiver = Tracer.new()
        with tracer.span("outer").start() as outer:
            inner = tracer.span("inner").child_of_current().start()
            assert get_current_span() is outer
        assert get_current_span() is None
        assert inner.context.parent_span_id == outer.context.span_id


class TestSampling:
    def test_null_sampler_marks_unsampled_but_still_enqueues(self):
        tracer, receiver = Tracer.new(NullSampler())
        tracer.span("quiet").start().end()
        finished = receiver.try_recv()
        assert finished is not None
        assert not finished.context.is_sampled

    def test_probabilistic_sampler_bounds(self):
        assert ProbabilisticSampler(1.0).should_sample("op").sampled
        assert not ProbabilisticSampler(0.0).should_sample("op").sampled
        with pytest.raises(ValueError):
            ProbabilisticSampler(1.5)

    def test_failing_sampler_means_unsampled(self):
        class Broken(Sampler):
            def should_sample(self, operation_name, tags=()):
                raise RuntimeError("boom")

        tracer, _ = Tracer.new(Broken())
        assert not tracer.span("op").start().context.is_sampled

    def test_child_ignores_sampler(self):
        tracer, _ = Tracer.new(NullSampler())
        parent = SpanContext(trace_id=TraceId(0, 1), span_id=1, flags=FLAG_SAMPLED)
        assert tracer.span("c").child_of(parent).start().context.is_sampled


class TestSpanLifecycle:
    def test_end_is_idempotent_and_freezes_span(self):
        tracer, receiver = Tracer.new()
        span = tracer.span("op").start()
        span.end()
        span.end()
        span.set_tag("late", 1)
        span.log({"event": "late"})
        finished = receiver.try_recv()
        assert receiver.try_recv() is None
        assert finished.tags == ()
        assert finished.logs == ()

    def test_end_never_precedes_start(self):
        tracer, receiver = Tracer.new()
        span = tracer.span("op").start_time(2_000_000_000).start()
        span.end(end_time_ns=1_000_000_000)
        finished = receiver.try_recv()
        assert finished.end_time_ns >= finished.start_time_ns
        assert finished.duration_ns == 0

    def test_duration_is_measured(self):
        tracer, receiver = Tracer.new()
        with tracer.span("op").start():
            time.sleep(0.01)
        finished = receiver.try_recv()
        assert finished.duration_ns >= 10_000_000
        assert finished.duration_us == finished.duration_ns // 1000

    def test_exception_is_recorded_and_propagates(self):
        tracer, receiver = Tracer.new()
        with pytest.raises(KeyError):
            with tracer.span("op").start():
                raise KeyError("missing")
        finished = receiver.try_recv()
        assert finished.get_tag("error") is True
        fields = {t.key: t.value for t in finished.logs[0].fields}
        assert fields["event"] == "error"
        assert fields["error.kind"] == "KeyError"

    def test_async_context_manager(self):
        tracer, receiver = Tracer.new()

        async def work():
            async with tracer.span("async-op").start() as span:
                assert get_current_span() is span
                await asyncio.sleep(0)

        asyncio.run(work())
        assert receiver.try_recv().operation_name == "async-op"

    def test_tag_values_are_coerced(self):
        assert Tag("k", object()).value.startswith("<object")
        assert Tag("k", 1 << 64).value == str(1 << 64)
        assert Tag("k", bytearray(b"ab")).value == b"ab"
        assert Tag("k", -5).value == -5

    def test_lone_surrogates_are_replaced(self):
        tag = Tag("key\udcff", "file\udcfe")
        assert (tag.key, tag.value) == ("key?", "file?")
        assert Tag("k", "ünïcode").value == "ünïcode"

        tracer, receiver = Tracer.new()
        span = tracer.span("op\udcff").start()
        assert span.operation_name == "op?"
        span.set_operation_name("renamed\udcff")
        span.end()
        assert receiver.try_recv().operation_name == "renamed?"


class TestChannel:
    def test_full_channel_drops_newest_without_raising(self):
        tracer, receiver = Tracer.new(capacity=2)
        for name in ("a", "b", "c"):
            tracer.span(name).start().end()
        assert len(receiver) == 2
        assert tracer.dropped_count == 1
        assert [receiver.try_recv().operation_name for _ in range(2)] == ["a", "b"]

    def test_drop_oldest_policy(self):
        tracer, receiver = Tracer.new(capacity=2, drop_policy=DropOldestPolicy())
        for name in ("a", "b", "c"):
            tracer.span(name).start().end()
        assert receiver.dropped_count == 1
        assert [receiver.try_recv().operation_name for _ in range(2)] == ["b", "c"]

    def test_closed_receiver_drops(self):
        tracer, receiver = Tracer.new()
        receiver.close()
        tracer.span("late").start().end()
        assert tracer.dropped_count == 1
        assert receiver.recv(timeout=0.01) is None

    def test_sender_sees_receiver_close(self):
        sender, receiver = channel(capacity=1)
        assert not sender.is_closed
        receiver.close()
        assert sender.is_closed
        assert receiver.closed

    def test_recv_times_out(self):
        _, receiver = channel(capacity=1)
        assert receiver.recv(timeout=0.01) is None
        assert receiver.recv_many(10, timeout=0.01) == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            channel(capacity=0)

    def test_clones_share_the_channel_across_threads(self):
        tracer, receiver = Tracer.new(AllSampler())

        def produce(t):
            for _ in range(50):
                t.span("op").start().end()

        threads = [threading.Thread(target=produce, args=(tracer.clone(),)) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        receiver.close()
        assert len(list(receiver)) == 200


class TestDropPolicies:
    def test_drop_newest_reports_rejection(self):
        from collections import deque

        from jaegertrace.processors import DropNewestPolicy

        queue = deque(["a"])
        assert DropNewestPolicy().handle(queue, "b", 1) == (False, 1)
        assert list(queue) == ["a"]

    def test_drop_oldest_reports_eviction(self):
        from collections import deque

        queue = deque(["a", "b"])
        assert DropOldestPolicy().handle(queue, "c", 2) == (True, 1)
        assert list(queue) == ["b", "c"]
