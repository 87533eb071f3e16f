"""
Benchmark Module

Sequential benchmarking of locally-hosted models served over the Ollama API,
with per-model aggregation, run reports and report comparison.

Usage:
    from llmbench.services.benchmark import BenchmarkConfig, BenchmarkRunner
    from llmbench.services.ollama import OllamaClient

    config = BenchmarkConfig(models=["mistral:7b"], iterations=3)

    async with OllamaClient("http://localhost:11434") as client:
        aggregates = await BenchmarkRunner(client).run(config)

    for a in aggregates:
        print(f"{a.model}: {a.average_tokens_per_second:.1f} tok/s")
"""

from .comparator import ComparisonReport, MetricDelta, ModelComparison, compare, percent_change
from .config import DEFAULT_PROMPTS, PROMPT_SETS, BenchmarkConfig, GenerationOptions
from .metrics import (
    MemoryStats,
    ModelAggregate,
    QualityMetrics,
    SampleMetric,
    aggregate,
    derive_memory_stats,
    derive_quality_metrics,
)
from .report import BenchmarkResult, RunReport, RunSummary, build_run_report, summarize_run
from .runner import (
    BenchmarkObserver,
    BenchmarkRunner,
    BenchmarkTask,
    CallFailure,
    CallResult,
    LoggingObserver,
    RunState,
)
from .session import run_benchmark

__all__ = [
    # Config
    "BenchmarkConfig",
    "GenerationOptions",
    "DEFAULT_PROMPTS",
    "PROMPT_SETS",
    # Metrics
    "SampleMetric",
    "ModelAggregate",
    "MemoryStats",
    "QualityMetrics",
    "aggregate",
    "derive_memory_stats",
    "derive_quality_metrics",
    # Runner
    "BenchmarkRunner",
    "BenchmarkTask",
    "BenchmarkObserver",
    "LoggingObserver",
    "CallResult",
    "CallFailure",
    "RunState",
    "run_benchmark",
    # Reports
    "BenchmarkResult",
    "RunReport",
    "RunSummary",
    "build_run_report",
    "summarize_run",
    # Comparison
    "ComparisonReport",
    "ModelComparison",
    "MetricDelta",
    "compare",
    "percent_change",
]
