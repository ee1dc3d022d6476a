"""jaegertrace error hierarchy and exceptions."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    MALFORMED_CONTEXT = "malformed_context"
    ENCODING_FAILED = "encoding_failed"
    DECODING_FAILED = "decoding_failed"
    TRANSPORT_FAILED = "transport_failed"
    INVALID_CONFIG = "invalid_config"


class JaegerTraceError(Exception):
    """
    Base exception for all jaegertrace errors.

    Carries an ``ErrorKind`` plus a chain of contextual causes: the underlying
    exception first, then the context each re-raising boundary appends with
    ``with_cause``.
    """

    kind: ErrorKind = ErrorKind.ENCODING_FAILED

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        *,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.causes: List[str] = []
        if cause is not None:
            self.causes.append(f"{type(cause).__name__}: {cause}")
            self.__cause__ = cause

    def with_cause(self, context: str) -> "JaegerTraceError":
        """Append a contextual cause and return self (for ``raise err.with_cause(...)``)."""
        self.causes.append(context)
        return self

    def __str__(self) -> str:
        text = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            text = f"{text} ({details_str})"
        if self.causes:
            text = f"{text} <- " + " <- ".join(self.causes)
        return text


class MalformedContext(JaegerTraceError):
    """Raised when a carrier holds no span context or an unparseable one."""

    kind = ErrorKind.MALFORMED_CONTEXT


class EncodingFailed(JaegerTraceError):
    """Raised when spans cannot be encoded into the wire format (always a bug)."""

    kind = ErrorKind.ENCODING_FAILED


class DecodingFailed(JaegerTraceError):
    """Raised when bytes cannot be decoded as an emitBatch message."""

    kind = ErrorKind.DECODING_FAILED


class TransportFailed(JaegerTraceError):
    """Raised when the UDP socket cannot be bound or a datagram cannot be sent."""

    kind = ErrorKind.TRANSPORT_FAILED

    @property
    def errno(self) -> Optional[int]:
        return self.details.get("errno")


class ConfigError(JaegerTraceError):
    """Raised when configuration is invalid or conflicting."""

    kind = ErrorKind.INVALID_CONFIG
