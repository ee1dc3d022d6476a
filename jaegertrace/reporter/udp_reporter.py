"""Reporter sending span batches to a Jaeger agent over UDP."""

from __future__ import annotations

import errno
import logging
import socket
import threading
from typing import Iterable, List, Optional, Tuple, Union

from jaegertrace.constants import (
    DEFAULT_AGENT_HOST,
    DEFAULT_BINARY_AGENT_PORT,
    DEFAULT_COMPACT_AGENT_PORT,
    JAEGER_CLIENT_VERSION,
    JAEGER_CLIENT_VERSION_TAG_KEY,
    MAX_DATAGRAM_SIZE,
    TRACER_HOSTNAME_TAG_KEY,
    TRACER_IP_TAG_KEY,
)
from jaegertrace.encoder.model import Process
from jaegertrace.encoder.thrift_codec import Protocol, encode_batch
from jaegertrace.errors import EncodingFailed, TransportFailed
from jaegertrace.tracer.span import FinishedSpan, Tag

logger = logging.getLogger(__name__)

Address = Tuple[str, int]

_DEFAULT_PORTS = {
    Protocol.COMPACT: DEFAULT_COMPACT_AGENT_PORT,
    Protocol.BINARY: DEFAULT_BINARY_AGENT_PORT,
}


def default_agent_port(protocol: Union[Protocol, str]) -> int:
    """Standard agent port for ``protocol`` (6831 compact, 6832 binary)."""
    return _DEFAULT_PORTS[Protocol(protocol)]


def _bind_socket(bind_address: Address) -> socket.socket:
    host, port = bind_address[0], bind_address[1]
    try:
        family, _, _, _, sockaddr = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)[0]
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.bind(sockaddr)
        except OSError:
            sock.close()
            raise
    except OSError as e:
        raise TransportFailed(
            "failed to bind reporter socket",
            {"address": f"{host}:{port}", "errno": e.errno},
            cause=e,
        ) from e
    return sock


def _local_ip() -> Optional[str]:
    # Connecting a UDP socket sends nothing; it only selects the outgoing interface
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.255.255.255", 1))
            return probe.getsockname()[0]
    except OSError:
        logger.debug("could not determine local IP address", exc_info=True)
        return None


class Reporter:
    """
    Encodes finished spans and sends each report as one UDP datagram.

    The process (service name plus service tags) is shared by every batch.
    ``add_service_tag`` and ``report`` may be called from different threads;
    each report encodes a snapshot of the process taken under a lock.

    ``report`` never retries. Failures surface as ``EncodingFailed`` (a bug)
    or ``TransportFailed`` (bind/send error); the reporter stays usable.
    """

    protocol: Protocol = Protocol.COMPACT

    def __init__(
        self,
        service_name: str,
        agent_address: Optional[Address] = None,
        bind_address: Address = ("0.0.0.0", 0),
        *,
        protocol: Union[Protocol, str, None] = None,
        report_unsampled: bool = True,
    ) -> None:
        """
        Bind the reporter socket and initialise the process.

        Args:
            service_name: Service name reported in every batch
            agent_address: ``(host, port)`` of the agent; defaults to localhost
                on the protocol's standard port
            bind_address: Local ``(host, port)`` to bind; port 0 picks an
                ephemeral port
            protocol: Overrides the class protocol (compact or binary)
            report_unsampled: When False, spans whose context is not sampled
                are filtered out before encoding

        Raises:
            TransportFailed: If the socket cannot be bound
        """
        if protocol is not None:
            self.protocol = Protocol(protocol)
        self.agent_address: Address = agent_address or (
            DEFAULT_AGENT_HOST,
            _DEFAULT_PORTS[self.protocol],
        )
        self.report_unsampled = report_unsampled

        self._service_name = service_name
        self._tags: List[Tag] = []
        self._lock = threading.Lock()
        self._closed = False
        self._socket = _bind_socket(bind_address)

        self.add_service_tag(Tag(JAEGER_CLIENT_VERSION_TAG_KEY, JAEGER_CLIENT_VERSION))
        try:
            self.add_service_tag(Tag(TRACER_HOSTNAME_TAG_KEY, socket.gethostname()))
        except OSError:
            logger.debug("could not determine hostname", exc_info=True)
        local_ip = _local_ip()
        if local_ip:
            self.add_service_tag(Tag(TRACER_IP_TAG_KEY, local_ip))

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def process_tags(self) -> List[Tag]:
        with self._lock:
            return list(self._tags)

    @property
    def local_address(self) -> Address:
        return self._socket.getsockname()[:2]

    def add_service_tag(self, tag: Tag) -> None:
        """Add a process tag. Only reports made after this call carry it."""
        with self._lock:
            self._tags.append(tag)

    def process(self) -> Process:
        """Snapshot of the current process."""
        with self._lock:
            return Process(service_name=self._service_name, tags=tuple(self._tags))

    def report(self, spans: Iterable[FinishedSpan]) -> None:
        """
        Encode ``spans`` into one emitBatch message and send it to the agent.

        Raises:
            EncodingFailed: If the spans cannot be encoded (a bug)
            TransportFailed: If the datagram cannot be sent, including when it
                is larger than one UDP datagram
        """
        spans = list(spans)
        if not self.report_unsampled:
            spans = [s for s in spans if s.context.is_sampled]
            if not spans:
                logger.debug("no sampled spans in batch - nothing reported")
                return

        if self._closed:
            raise TransportFailed("reporter is closed", {"agent": self._agent_str()})
        try:
            data = encode_batch(self.process(), spans, self.protocol)
            self._send(data)
        except (EncodingFailed, TransportFailed) as e:
            e.with_cause(f"reporting {len(spans)} spans to {self._agent_str()}")
            raise

    def _agent_str(self) -> str:
        return f"{self.agent_address[0]}:{self.agent_address[1]}"

    def _send(self, data: bytes) -> None:
        if len(data) > MAX_DATAGRAM_SIZE:
            raise TransportFailed(
                "encoded batch exceeds the maximum datagram size",
                {
                    "agent": self._agent_str(),
                    "bytes": len(data),
                    "limit": MAX_DATAGRAM_SIZE,
                    "errno": errno.EMSGSIZE,
                },
            )
        try:
            self._socket.sendto(data, self.agent_address)
        except OSError as e:
            raise TransportFailed(
                "failed to send batch to agent",
                {"agent": self._agent_str(), "bytes": len(data), "errno": e.errno},
                cause=e,
            ) from e

    def close(self) -> None:
        """Release the socket. Later reports raise TransportFailed."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._socket.close()

    def __enter__(self) -> "Reporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(service_name={self._service_name!r}, "
            f"agent={self._agent_str()}, protocol={self.protocol.value})"
        )


class CompactReporter(Reporter):
    """Reporter for agents accepting jaeger.thrift over the compact protocol (port 6831)."""

    protocol = Protocol.COMPACT


class BinaryReporter(Reporter):
    """Reporter for agents accepting jaeger.thrift over the binary protocol (port 6832)."""

    protocol = Protocol.BINARY


def create_reporter(
    service_name: str,
    protocol: Union[Protocol, str] = Protocol.COMPACT,
    **kwargs,
) -> Reporter:
    """Build the reporter class matching ``protocol``."""
    if Protocol(protocol) is Protocol.BINARY:
        return BinaryReporter(service_name, **kwargs)
    return CompactReporter(service_name, **kwargs)

