"""
Benchmark Metrics

Per-call samples and their reductions:
- ModelAggregate (throughput / latency statistics per model)
- MemoryStats (peak / average memory delta, tokens per MB)
- QualityMetrics (completion rate, response length, consistency)
"""

import math
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from llmbench.core.exceptions import EmptyResultSetError

PROMPT_PREVIEW_LENGTH = 50


def truncate_prompt(prompt: str, length: int = PROMPT_PREVIEW_LENGTH) -> str:
    """Shorten a prompt for storage in samples"""
    if len(prompt) <= length:
        return prompt
    return prompt[:length] + "..."


def tokens_per_second(completion_tokens: int, eval_ms: float) -> float:
    """Generation throughput; 0 when nothing was generated or no time was reported"""
    if completion_tokens <= 0 or eval_ms <= 0:
        return 0.0
    return completion_tokens / (eval_ms / 1000)


@dataclass
class SampleMetric:
    """Outcome of one successfully executed benchmark call"""

    model: str
    prompt: str
    iteration: int

    tokens_per_second: float = 0.0
    first_token_latency_ms: float = 0.0
    total_latency_ms: float = 0.0

    prompt_tokens: int = 0
    completion_tokens: int = 0

    memory_delta_mb: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": self.prompt,
            "iteration": self.iteration,
            "tokens_per_second": self.tokens_per_second,
            "first_token_latency_ms": self.first_token_latency_ms,
            "total_latency_ms": self.total_latency_ms,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "memory_delta_mb": self.memory_delta_mb,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SampleMetric":
        return cls(
            model=data["model"],
            prompt=data.get("prompt", ""),
            iteration=int(data.get("iteration", 0)),
            tokens_per_second=float(data.get("tokens_per_second", 0.0)),
            first_token_latency_ms=float(data.get("first_token_latency_ms", 0.0)),
            total_latency_ms=float(data.get("total_latency_ms", 0.0)),
            prompt_tokens=int(data.get("prompt_tokens", 0)),
            completion_tokens=int(data.get("completion_tokens", 0)),
            memory_delta_mb=float(data.get("memory_delta_mb", 0.0)),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(UTC)
    return datetime.fromisoformat(value)


@dataclass
class ModelAggregate:
    """Reduction of all samples collected for one model in one run"""

    model: str
    samples: list[SampleMetric]
    average_tokens_per_second: float
    min_tokens_per_second: float
    max_tokens_per_second: float
    average_first_token_latency_ms: float
    average_total_latency_ms: float
    standard_deviation: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "average_tokens_per_second": self.average_tokens_per_second,
            "min_tokens_per_second": self.min_tokens_per_second,
            "max_tokens_per_second": self.max_tokens_per_second,
            "average_first_token_latency_ms": self.average_first_token_latency_ms,
            "average_total_latency_ms": self.average_total_latency_ms,
            "standard_deviation": self.standard_deviation,
            "samples": [s.to_dict() for s in self.samples],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelAggregate":
        return cls(
            model=data["model"],
            samples=[SampleMetric.from_dict(s) for s in data.get("samples", [])],
            average_tokens_per_second=float(data.get("average_tokens_per_second", 0.0)),
            min_tokens_per_second=float(data.get("min_tokens_per_second", 0.0)),
            max_tokens_per_second=float(data.get("max_tokens_per_second", 0.0)),
            average_first_token_latency_ms=float(data.get("average_first_token_latency_ms", 0.0)),
            average_total_latency_ms=float(data.get("average_total_latency_ms", 0.0)),
            standard_deviation=float(data.get("standard_deviation", 0.0)),
        )


@dataclass
class MemoryStats:
    """Memory deltas observed across a model's samples (MB)"""

    peak_mb: float = 0.0
    average_mb: float = 0.0
    efficiency: float = 0.0  # total tokens per MB of average delta

    def to_dict(self) -> dict[str, float]:
        return {
            "peak_mb": self.peak_mb,
            "average_mb": self.average_mb,
            "efficiency": self.efficiency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryStats":
        return cls(
            peak_mb=float(data.get("peak_mb", 0.0)),
            average_mb=float(data.get("average_mb", 0.0)),
            efficiency=float(data.get("efficiency", 0.0)),
        )


@dataclass
class QualityMetrics:
    """Response quality indicators derived from token counts"""

    completion_rate: float = 0.0  # percent of samples with output
    average_response_length: float = 0.0  # completion tokens
    response_time_ms: float = 0.0
    consistency: float = 0.0  # 0-100, 100 = identical response lengths

    def to_dict(self) -> dict[str, float]:
        return {
            "completion_rate": self.completion_rate,
            "average_response_length": self.average_response_length,
            "response_time_ms": self.response_time_ms,
            "consistency": self.consistency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QualityMetrics":
        return cls(
            completion_rate=float(data.get("completion_rate", 0.0)),
            average_response_length=float(data.get("average_response_length", 0.0)),
            response_time_ms=float(data.get("response_time_ms", 0.0)),
            consistency=float(data.get("consistency", 0.0)),
        )


def aggregate(model: str, samples: Sequence[SampleMetric]) -> ModelAggregate:
    """Reduce a model's samples to summary statistics.

    Raises:
        EmptyResultSetError: if samples is empty
    """
    if not samples:
        raise EmptyResultSetError(model)

    tps_values = [s.tokens_per_second for s in samples]

    return ModelAggregate(
        model=model,
        samples=list(samples),
        average_tokens_per_second=statistics.fmean(tps_values),
        min_tokens_per_second=min(tps_values),
        max_tokens_per_second=max(tps_values),
        average_first_token_latency_ms=statistics.fmean(s.first_token_latency_ms for s in samples),
        average_total_latency_ms=statistics.fmean(s.total_latency_ms for s in samples),
        standard_deviation=statistics.pstdev(tps_values),
    )


def derive_memory_stats(samples: Sequence[SampleMetric]) -> MemoryStats:
    """Peak / average memory delta and tokens produced per MB."""
    if not samples:
        return MemoryStats()

    deltas = [s.memory_delta_mb for s in samples]
    average = statistics.fmean(deltas)
    total_tokens = sum(s.total_tokens for s in samples)

    efficiency = total_tokens / average if average != 0 else 0.0
    if not math.isfinite(efficiency):
        efficiency = 0.0

    return MemoryStats(peak_mb=max(deltas), average_mb=average, efficiency=efficiency)


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population stddev / mean; 1.0 (maximal variation) when the mean is 0."""
    mean = statistics.fmean(values)
    if mean <= 0:
        return 1.0
    return statistics.pstdev(values) / mean


def derive_quality_metrics(samples: Sequence[SampleMetric]) -> QualityMetrics:
    """Completion rate, response length and length consistency."""
    if not samples:
        return QualityMetrics()

    total = len(samples)
    completed = sum(1 for s in samples if s.completion_tokens > 0)
    lengths = [float(s.completion_tokens) for s in samples]

    return QualityMetrics(
        completion_rate=completed / total * 100,
        average_response_length=statistics.fmean(lengths),
        response_time_ms=statistics.fmean(s.total_latency_ms for s in samples),
        consistency=max(0.0, 100 - coefficient_of_variation(lengths) * 100),
    )
