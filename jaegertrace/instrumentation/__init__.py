"""Instrumentation helpers."""

from jaegertrace.instrumentation.decorator import traced
from jaegertrace.instrumentation.http_client import inject_headers
from jaegertrace.instrumentation.http_server import extract_parent_context, start_server_span

__all__ = [
    "traced",
    "inject_headers",
    "extract_parent_context",
    "start_server_span",
]
