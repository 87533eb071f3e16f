"""
Report Comparison

Aligns two RunReports by model name and computes relative changes.
A change is None (reported as N/A) when the baseline value is zero.
"""

import statistics
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from llmbench.core.exceptions import ComparisonMismatchError

from .report import BenchmarkResult, RunReport


def percent_change(baseline: float, current: float) -> float | None:
    """(current - baseline) / baseline * 100, or None for a zero baseline."""
    if baseline == 0:
        return None
    return (current - baseline) / baseline * 100


@dataclass(frozen=True)
class MetricDelta:
    baseline: float
    current: float
    change: float | None

    @classmethod
    def between(cls, baseline: float, current: float) -> "MetricDelta":
        return cls(baseline=baseline, current=current, change=percent_change(baseline, current))

    def to_dict(self) -> dict[str, Any]:
        return {"baseline": self.baseline, "current": self.current, "change": self.change}


@dataclass(frozen=True)
class ModelComparison:
    model: str
    tokens_per_second: MetricDelta
    first_token_latency: MetricDelta
    memory_usage: MetricDelta

    @property
    def latency_improvement(self) -> float | None:
        """Lower latency is better, so the improvement is the negated change."""
        change = self.first_token_latency.change
        return -change if change is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "tokens_per_second": self.tokens_per_second.to_dict(),
            "first_token_latency": self.first_token_latency.to_dict(),
            "memory_usage": self.memory_usage.to_dict(),
        }


@dataclass(frozen=True)
class RunSnapshot:
    completed_at: datetime
    total_models: int
    average_tokens_per_second: float

    @classmethod
    def of(cls, report: RunReport) -> "RunSnapshot":
        return cls(
            completed_at=report.summary.completed_at,
            total_models=report.summary.total_models,
            average_tokens_per_second=report.summary.average_tokens_per_second,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed_at": self.completed_at.isoformat(),
            "total_models": self.total_models,
            "average_tokens_per_second": self.average_tokens_per_second,
        }


@dataclass(frozen=True)
class ComparisonReport:
    baseline: RunSnapshot
    current: RunSnapshot
    comparisons: tuple[ModelComparison, ...]
    average_speed_improvement: float | None
    average_latency_improvement: float | None

    @property
    def models_compared(self) -> int:
        return len(self.comparisons)

    @property
    def applicable(self) -> bool:
        return self.models_compared > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseline": self.baseline.to_dict(),
            "current": self.current.to_dict(),
            "comparisons": [c.to_dict() for c in self.comparisons],
            "summary": {
                "models_compared": self.models_compared,
                "average_speed_improvement": self.average_speed_improvement,
                "average_latency_improvement": self.average_latency_improvement,
            },
        }


def compare_results(baseline: BenchmarkResult, current: BenchmarkResult) -> ModelComparison:
    return ModelComparison(
        model=current.model,
        tokens_per_second=MetricDelta.between(baseline.tokens_per_second, current.tokens_per_second),
        first_token_latency=MetricDelta.between(
            baseline.first_token_latency_ms, current.first_token_latency_ms
        ),
        memory_usage=MetricDelta.between(baseline.memory.average_mb, current.memory.average_mb),
    )


def _mean_defined(values: list[float | None]) -> float | None:
    defined = [v for v in values if v is not None]
    if not defined:
        return None
    return statistics.fmean(defined)


def compare(baseline: RunReport, current: RunReport, strict: bool = False) -> ComparisonReport:
    """Compare two reports model by model.

    Models present in only one report are left out. With strict=True, two
    reports without a common model raise ComparisonMismatchError; otherwise
    the result has no comparisons and N/A (None) averages.
    """
    comparisons = []
    for current_result in current.results:
        baseline_result = baseline.get_result(current_result.model)
        if baseline_result is not None:
            comparisons.append(compare_results(baseline_result, current_result))

    if strict and not comparisons:
        raise ComparisonMismatchError(
            [r.model for r in baseline.results],
            [r.model for r in current.results],
        )

    return ComparisonReport(
        baseline=RunSnapshot.of(baseline),
        current=RunSnapshot.of(current),
        comparisons=tuple(comparisons),
        average_speed_improvement=_mean_defined([c.tokens_per_second.change for c in comparisons]),
        average_latency_improvement=_mean_defined([c.latency_improvement for c in comparisons]),
    )
