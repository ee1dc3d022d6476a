"""Reporters for delivering span batches to a Jaeger agent."""

from jaegertrace.reporter.udp_reporter import (
    BinaryReporter,
    CompactReporter,
    Reporter,
    create_reporter,
    default_agent_port,
)

__all__ = ["Reporter", "CompactReporter", "BinaryReporter", "create_reporter", "default_agent_port"]
