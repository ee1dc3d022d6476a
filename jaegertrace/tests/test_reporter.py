"""Tests for the UDP reporter."""

import errno
import socket

import pytest

from jaegertrace.constants import (
    DEFAULT_BINARY_AGENT_PORT,
    DEFAULT_COMPACT_AGENT_PORT,
    JAEGER_CLIENT_VERSION_TAG_KEY,
    TRACER_HOSTNAME_TAG_KEY,
)
from jaegertrace.encoder import Protocol, decode_batch
from jaegertrace.errors import ErrorKind, TransportFailed
from jaegertrace.processors import NullSampler
from jaegertrace.reporter import BinaryReporter, CompactReporter, Reporter, create_reporter
from jaegertrace.tracer import Tag, Tracer


@pytest.fixture
def agent():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5)
    yield sock
    sock.close()


def _finished(name="op", tags=(), sampler=None):
    tracer, receiver = Tracer.new(sampler)
    builder = tracer.span(name)
    for tag in tags:
        builder = builder.tag(tag)
    builder.start().end()
    return receiver.try_recv()


def _reporter(agent, cls=Reporter, **kwargs):
    return cls("svc", agent_address=agent.getsockname(), bind_address=("127.0.0.1", 0), **kwargs)


def _receive(agent, protocol=Protocol.COMPACT):
    data, _ = agent.recvfrom(65535)
    return decode_batch(data, protocol)


class TestReporterSetup:
    def test_default_process_tags(self, agent):
        with _reporter(agent) as reporter:
            keys = [t.key for t in reporter.process_tags]
        assert JAEGER_CLIENT_VERSION_TAG_KEY in keys
        assert TRACER_HOSTNAME_TAG_KEY in keys

    def test_default_agent_ports(self):
        with CompactReporter("svc", bind_address=("127.0.0.1", 0)) as compact:
            assert compact.agent_address == ("127.0.0.1", DEFAULT_COMPACT_AGENT_PORT)
        with BinaryReporter("svc", bind_address=("127.0.0.1", 0)) as binary:
            assert binary.agent_address == ("127.0.0.1", DEFAULT_BINARY_AGENT_PORT)

    def test_create_reporter_picks_class(self, agent):
        with create_reporter("svc", "binary", bind_address=("127.0.0.1", 0)) as reporter:
            assert isinstance(reporter, BinaryReporter)
            assert reporter.protocol is Protocol.BINARY

    def test_bind_failure_raises_transport_failed(self, agent):
        taken = agent.getsockname()
        with pytest.raises(TransportFailed) as excinfo:
            Reporter("svc", bind_address=taken)
        assert excinfo.value.kind is ErrorKind.TRANSPORT_FAILED
        assert excinfo.value.errno == errno.EADDRINUSE

    def test_datagrams_come_from_local_address(self, agent):
        with _reporter(agent) as reporter:
            host, port = reporter.local_address
            reporter.report([_finished()])
            _, sender = agent.recvfrom(65535)
        assert host == "127.0.0.1"
        assert port != 0
        assert sender[:2] == (host, port)


class TestReport:
    def test_binary_reporter_sends_binary_encoding(self, agent):
        with _reporter(agent, BinaryReporter) as reporter:
            reporter.report([_finished("bin")])
            batch = _receive(agent, Protocol.BINARY)
        assert batch.spans[0].operation_name == "bin"

    def test_service_tag_applies_only_to_later_reports(self, agent):
        with _reporter(agent) as reporter:
            reporter.report([_finished()])
            before = _receive(agent)
            reporter.add_service_tag(Tag("region", "eu"))
            reporter.report([_finished()])
            after = _receive(agent)

        assert before.process.tag_value("region") is None
        assert after.process.tag_value("region") == "eu"

    def test_oversized_datagram_raises_and_reporter_stays_usable(self, agent):
        huge = _finished(tags=[Tag("blob", "x" * 70000)])
        with _reporter(agent) as reporter:
            with pytest.raises(TransportFailed) as excinfo:
                reporter.report([huge])
            assert excinfo.value.errno == errno.EMSGSIZE
            assert "reporting 1 spans to" in str(excinfo.value)

            reporter.report([_finished("small")])
            batch = _receive(agent)
        assert batch.spans[0].operation_name == "small"

    def test_unsampled_spans_reported_by_default(self, agent):
        with _reporter(agent) as reporter:
            reporter.report([_finished("quiet", sampler=NullSampler())])
            batch = _receive(agent)
        assert batch.spans[0].operation_name == "quiet"
        assert batch.spans[0].flags == 0

    def test_unsampled_spans_filtered_when_disabled(self, agent):
        with _reporter(agent, report_unsampled=False) as reporter:
            reporter.report([_finished("quiet", sampler=NullSampler()), _finished("loud")])
            batch = _receive(agent)
            # Nothing at all is sent for an all-unsampled batch
            reporter.report([_finished("quiet", sampler=NullSampler())])
        assert [s.operation_name for s in batch.spans] == ["loud"]
        agent.settimeout(0.2)
        with pytest.raises(socket.timeout):
            agent.recvfrom(65535)

    def test_unencodable_text_does_not_spoil_the_batch(self, agent):
        ok = _finished("ok")
        odd = _finished("read \udcff", tags=[Tag("path", "file\udcff"), Tag("dir\udcfe", 1)])
        with _reporter(agent) as reporter:
            reporter.report([ok, odd])
            batch = _receive(agent)
        assert [s.operation_name for s in batch.spans] == ["ok", "read ?"]
        assert batch.spans[1].tag_value("path") == "file?"
        assert batch.spans[1].tag_value("dir?") == 1

    def test_report_after_close_raises(self, agent):
        reporter = _reporter(agent)
        reporter.close()
        with pytest.raises(TransportFailed):
            reporter.report([_finished()])
