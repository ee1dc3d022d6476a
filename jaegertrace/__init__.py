"""jaegertrace: a Jaeger tracing client reporting spans to the agent over UDP."""

from jaegertrace.version import __version__
from jaegertrace.errors import (
    ConfigError,
    DecodingFailed,
    EncodingFailed,
    ErrorKind,
    JaegerTraceError,
    MalformedContext,
    TransportFailed,
)
from jaegertrace.tracer import (
    FinishedSpan,
    Log,
    ReferenceKind,
    Span,
    SpanBuilder,
    SpanContext,
    SpanOptions,
    SpanReceiver,
    SpanReference,
    SpanSender,
    Tag,
    TraceId,
    Tracer,
    channel,
)
from jaegertrace.context import (
    extract_from_binary,
    extract_from_carrier,
    get_current_span,
    inject_into_binary,
    inject_into_carrier,
)
from jaegertrace.processors import (
    AllSampler,
    BatchReportProcessor,
    NullSampler,
    ProbabilisticSampler,
    Sampler,
)
from jaegertrace.encoder import Process, Protocol
from jaegertrace.reporter import BinaryReporter, CompactReporter, Reporter
from jaegertrace.instrumentation import inject_headers, start_server_span, traced
from jaegertrace import config
from jaegertrace.bootstrap import get_tracer, init, stop_tracing

__all__ = [
    "__version__",
    "init",
    "get_tracer",
    "stop_tracing",
    "config",
    "Tracer",
    "SpanBuilder",
    "SpanOptions",
    "Span",
    "FinishedSpan",
    "SpanContext",
    "TraceId",
    "Tag",
    "Log",
    "ReferenceKind",
    "SpanReference",
    "SpanSender",
    "SpanReceiver",
    "channel",
    "get_current_span",
    "inject_into_carrier",
    "extract_from_carrier",
    "inject_into_binary",
    "extract_from_binary",
    "Sampler",
    "AllSampler",
    "NullSampler",
    "ProbabilisticSampler",
    "BatchReportProcessor",
    "Process",
    "Protocol",
    "Reporter",
    "CompactReporter",
    "BinaryReporter",
    "traced",
    "inject_headers",
    "start_server_span",
    "JaegerTraceError",
    "ErrorKind",
    "MalformedContext",
    "EncodingFailed",
    "DecodingFailed",
    "TransportFailed",
    "ConfigError",
]
