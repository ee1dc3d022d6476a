"""Span processing: sampling, queue overflow policies and the drain loop."""

from jaegertrace.processors.drop_policy import (
    DEFAULT_DROP_POLICY,
    Admission,
    DropNewestPolicy,
    DropOldestPolicy,
    DropPolicy,
)
from jaegertrace.processors.sampler import (
    AllSampler,
    NullSampler,
    ProbabilisticSampler,
    Sampler,
    SamplingResult,
)
from jaegertrace.processors.batch_processor import BatchReportProcessor

__all__ = [
    "BatchReportProcessor",
    "Admission",
    "DropPolicy",
    "DropOldestPolicy",
    "DropNewestPolicy",
    "DEFAULT_DROP_POLICY",
    "Sampler",
    "SamplingResult",
    "AllSampler",
    "NullSampler",
    "ProbabilisticSampler",
]
