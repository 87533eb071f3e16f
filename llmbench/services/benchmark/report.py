"""
Run Reports

Turns per-model aggregates into the persisted RunReport: per-model results
with memory and quality metrics, a run summary and run metadata.
"""

import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from llmbench.system.profile import SystemProfile

from .metrics import (
    MemoryStats,
    ModelAggregate,
    QualityMetrics,
    derive_memory_stats,
    derive_quality_metrics,
)

REPORT_SCHEMA_VERSION = "1.0.0"


@dataclass(frozen=True)
class BenchmarkResult:
    """Per-model result: aggregate plus derived memory and quality metrics"""

    aggregate: ModelAggregate
    memory: MemoryStats
    quality: QualityMetrics

    @property
    def model(self) -> str:
        return self.aggregate.model

    @property
    def tokens_per_second(self) -> float:
        return self.aggregate.average_tokens_per_second

    @property
    def first_token_latency_ms(self) -> float:
        return self.aggregate.average_first_token_latency_ms

    @property
    def total_latency_ms(self) -> float:
        return self.aggregate.average_total_latency_ms

    @property
    def sample_count(self) -> int:
        return len(self.aggregate.samples)

    @classmethod
    def from_aggregate(cls, aggregate: ModelAggregate) -> "BenchmarkResult":
        return cls(
            aggregate=aggregate,
            memory=derive_memory_stats(aggregate.samples),
            quality=derive_quality_metrics(aggregate.samples),
        )

    def to_dict(self, include_samples: bool = True) -> dict[str, Any]:
        data = self.aggregate.to_dict()
        if not include_samples:
            data.pop("samples")
        return {
            "model": self.model,
            "tokens_per_second": self.tokens_per_second,
            "first_token_latency_ms": self.first_token_latency_ms,
            "total_latency_ms": self.total_latency_ms,
            "memory": self.memory.to_dict(),
            "quality": self.quality.to_dict(),
            "aggregate": data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BenchmarkResult":
        aggregate_data = dict(data.get("aggregate") or {})
        aggregate_data.setdefault("model", data["model"])
        aggregate_data.setdefault("average_tokens_per_second", data.get("tokens_per_second", 0.0))
        aggregate_data.setdefault(
            "average_first_token_latency_ms", data.get("first_token_latency_ms", 0.0)
        )
        aggregate_data.setdefault("average_total_latency_ms", data.get("total_latency_ms", 0.0))
        return cls(
            aggregate=ModelAggregate.from_dict(aggregate_data),
            memory=MemoryStats.from_dict(data.get("memory", {})),
            quality=QualityMetrics.from_dict(data.get("quality", {})),
        )


@dataclass(frozen=True)
class RunSummary:
    """Run-level summary; model names are None when no model produced data"""

    total_models: int
    total_samples: int
    fastest_model: str | None
    slowest_model: str | None
    average_tokens_per_second: float
    completed_at: datetime

    @property
    def has_data(self) -> bool:
        return self.total_models > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_models": self.total_models,
            "total_samples": self.total_samples,
            "fastest_model": self.fastest_model,
            "slowest_model": self.slowest_model,
            "average_tokens_per_second": self.average_tokens_per_second,
            "completed_at": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunSummary":
        return cls(
            total_models=int(data.get("total_models", 0)),
            total_samples=int(data.get("total_samples", 0)),
            fastest_model=data.get("fastest_model"),
            slowest_model=data.get("slowest_model"),
            average_tokens_per_second=float(data.get("average_tokens_per_second", 0.0)),
            completed_at=datetime.fromisoformat(data["completed_at"]),
        )


@dataclass(frozen=True)
class RunMetadata:
    schema_version: str
    duration_ms: float
    configuration: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "duration_ms": self.duration_ms,
            "configuration": self.configuration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunMetadata":
        return cls(
            schema_version=data.get("schema_version", REPORT_SCHEMA_VERSION),
            duration_ms=float(data.get("duration_ms", 0.0)),
            configuration=data.get("configuration") or {},
        )


@dataclass(frozen=True)
class RunReport:
    """Top-level artifact of one benchmark invocation"""

    summary: RunSummary
    system: SystemProfile
    results: tuple[BenchmarkResult, ...]
    metadata: RunMetadata

    def get_result(self, model: str) -> BenchmarkResult | None:
        for result in self.results:
            if result.model == model:
                return result
        return None

    def to_dict(self, include_samples: bool = True) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "system": self.system.to_dict(),
            "results": [r.to_dict(include_samples) for r in self.results],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunReport":
        return cls(
            summary=RunSummary.from_dict(data["summary"]),
            system=SystemProfile.from_dict(data.get("system", {})),
            results=tuple(BenchmarkResult.from_dict(r) for r in data.get("results", [])),
            metadata=RunMetadata.from_dict(data.get("metadata", {})),
        )


def summarize_run(
    results: Sequence[BenchmarkResult],
    completed_at: datetime | None = None,
) -> RunSummary:
    """Fastest / slowest model and mean throughput across models.

    Ties go to the first model in list order. The average is the plain mean
    of per-model means, not weighted by sample count.
    """
    completed_at = completed_at or datetime.now(UTC)
    if not results:
        return RunSummary(
            total_models=0,
            total_samples=0,
            fastest_model=None,
            slowest_model=None,
            average_tokens_per_second=0.0,
            completed_at=completed_at,
        )

    fastest = results[0]
    slowest = results[0]
    for result in results[1:]:
        if result.tokens_per_second > fastest.tokens_per_second:
            fastest = result
        if result.tokens_per_second < slowest.tokens_per_second:
            slowest = result

    return RunSummary(
        total_models=len(results),
        total_samples=sum(r.sample_count for r in results),
        fastest_model=fastest.model,
        slowest_model=slowest.model,
        average_tokens_per_second=statistics.fmean(r.tokens_per_second for r in results),
        completed_at=completed_at,
    )


def build_run_report(
    aggregates: Sequence[ModelAggregate],
    system: SystemProfile,
    started_at: datetime,
    configuration: dict[str, Any] | None = None,
    completed_at: datetime | None = None,
) -> RunReport:
    """Assemble the RunReport for a finished run."""
    completed_at = completed_at or datetime.now(UTC)
    results = tuple(BenchmarkResult.from_aggregate(a) for a in aggregates)

    return RunReport(
        summary=summarize_run(results, completed_at),
        system=system,
        results=results,
        metadata=RunMetadata(
            schema_version=REPORT_SCHEMA_VERSION,
            duration_ms=max(0.0, (completed_at - started_at).total_seconds() * 1000),
            configuration=dict(configuration or {}),
        ),
    )
