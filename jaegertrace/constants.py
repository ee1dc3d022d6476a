"""Header names, tag keys and protocol defaults shared across the package."""

from jaegertrace.version import __version__

TRACER_CONTEXT_HEADER_NAME = "uber-trace-id"
TRACER_BAGGAGE_HEADER_PREFIX = "uberctx-"

JAEGER_CLIENT_VERSION = f"Python-jaegertrace-{__version__}"
JAEGER_CLIENT_VERSION_TAG_KEY = "jaeger.version"
TRACER_HOSTNAME_TAG_KEY = "hostname"
TRACER_IP_TAG_KEY = "ip"

DEFAULT_AGENT_HOST = "127.0.0.1"
DEFAULT_COMPACT_AGENT_PORT = 6831
DEFAULT_BINARY_AGENT_PORT = 6832

# Largest UDP payload over IPv4.
MAX_DATAGRAM_SIZE = 65507

FLAG_SAMPLED = 0x01
FLAG_DEBUG = 0x02
