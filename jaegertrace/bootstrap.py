"""Process-wide setup: build the tracing pipeline from configuration."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from jaegertrace import config as config_module
from jaegertrace.processors.batch_processor import BatchReportProcessor
from jaegertrace.processors.sampler import AllSampler, ProbabilisticSampler, Sampler
from jaegertrace.reporter.udp_reporter import Reporter, create_reporter, default_agent_port
from jaegertrace.tracer.span import Tag
from jaegertrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_tracer: Optional[Tracer] = None
_reporter: Optional[Reporter] = None
_processor: Optional[BatchReportProcessor] = None


def _build_sampler(sample_rate: float) -> Sampler:
    if sample_rate >= 1.0:
        return AllSampler()
    return ProbabilisticSampler(sample_rate)


def init(config_file: Optional[str] = None, **overrides: Any) -> Tracer:
    """
    Initialise tracing for this process.

    Loads configuration (explicit keyword arguments > JAEGERTRACE_* environment
    variables > config file), then wires sampler, tracer, span channel, UDP
    reporter and the background drain loop together.

    Calling ``init()`` again without ``stop_tracing()`` in between logs a
    warning and returns the tracer that is already running.

    Args:
        config_file: Path to a TOML config file; searched for when None
        **overrides: Flat settings such as ``service_name="checkout"`` or
            ``agent_port=6831``

    Returns:
        The process tracer

    Raises:
        ConfigError: If the configuration is invalid
        TransportFailed: If the reporter socket cannot be bound
    """
    global _tracer, _reporter, _processor

    with _lock:
        if _tracer is not None:
            logger.warning("init() called while tracing is already running; returning existing tracer")
            return _tracer

        cfg = config_module.load_config(config_file, overrides)
        if cfg.logging.debug:
            logging.getLogger("jaegertrace").setLevel(logging.DEBUG)

        rep = cfg.reporter
        reporter = create_reporter(
            cfg.tracing.service_name,
            rep.protocol,
            agent_address=(rep.agent_host, rep.agent_port or default_agent_port(rep.protocol)),
            bind_address=(rep.bind_host, rep.bind_port),
            report_unsampled=cfg.tracing.report_unsampled,
        )
        for key, value in rep.tags.items():
            reporter.add_service_tag(Tag(key, value))

        tracer, receiver = Tracer.new(
            _build_sampler(cfg.tracing.sample_rate),
            capacity=cfg.batching.queue_capacity,
        )
        processor = BatchReportProcessor(
            receiver,
            reporter,
            max_batch_size=cfg.batching.max_batch_size,
            schedule_delay_millis=cfg.batching.schedule_delay_millis,
        )

        _tracer, _reporter, _processor = tracer, reporter, processor
        logger.debug("tracing started: %r", reporter)
        return tracer


def get_tracer() -> Optional[Tracer]:
    """The tracer created by ``init()``, or None before init / after stop."""
    return _tracer


def stop_tracing(timeout: Optional[float] = None) -> None:
    """Flush queued spans, close the reporter and forget the pipeline."""
    global _tracer, _reporter, _processor

    with _lock:
        processor, reporter = _processor, _reporter
        _tracer = _reporter = _processor = None

    if processor is not None:
        processor.shutdown(timeout)
    if reporter is not None:
        reporter.close()
