"""Sampling decisions for new traces."""

import random
from dataclasses import dataclass
from typing import Sequence


@dataclass
class SamplingResult:
    sampled: bool


class Sampler:
    """
    Decides whether a new root trace is recorded.

    Only consulted for spans without references; child spans inherit the
    decision of their parent.
    """

    def should_sample(self, operation_name: str, tags: Sequence = ()) -> SamplingResult:
        raise NotImplementedError


class AllSampler(Sampler):
    """Samples every trace."""

    def should_sample(self, operation_name: str, tags: Sequence = ()) -> SamplingResult:
        return SamplingResult(sampled=True)


class NullSampler(Sampler):
    """Samples nothing."""

    def should_sample(self, operation_name: str, tags: Sequence = ()) -> SamplingResult:
        return SamplingResult(sampled=False)


class ProbabilisticSampler(Sampler):
    """Head-based sampler using a fixed probability."""

    def __init__(self, sample_rate: float = 1.0) -> None:
        if not 0.0 <= sample_rate <= 1.0:
            raise ValueError("sample_rate must be between 0.0 and 1.0")
        self.sample_rate = sample_rate

    def should_sample(self, operation_name: str, tags: Sequence = ()) -> SamplingResult:
        return SamplingResult(sampled=random.random() < self.sample_rate)
