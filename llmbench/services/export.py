"""Report persistence and text rendering.

JSON is the persisted format and the input of `llmbench compare`;
CSV and Markdown are export-only.
"""

import csv
import io
import json
import logging
from collections.abc import Sequence
from pathlib import Path

from llmbench.core.exceptions import LLMBenchError
from llmbench.services.benchmark.comparator import ComparisonReport
from llmbench.services.benchmark.report import RunReport
from llmbench.services.catalog import MODEL_TIERS, ModelTier
from llmbench.services.recommender import hardware_score, tier_for
from llmbench.system.profile import SystemProfile

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "model",
    "tokens_per_second",
    "first_token_latency_ms",
    "total_latency_ms",
    "min_tokens_per_second",
    "max_tokens_per_second",
    "standard_deviation",
    "samples",
    "peak_memory_mb",
    "average_memory_mb",
    "memory_efficiency",
    "completion_rate",
    "average_response_length",
    "consistency",
]


def report_to_json(
    report: RunReport,
    include_samples: bool = True,
    include_system_info: bool = True,
) -> str:
    data = report.to_dict(include_samples)
    if not include_system_info:
        del data["system"]
    return json.dumps(data, indent=2)


def save_report(
    report: RunReport,
    path: str | Path,
    include_samples: bool = True,
    include_system_info: bool = True,
) -> Path:
    """Write a report as JSON, creating parent directories."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(
        report_to_json(report, include_samples, include_system_info),
        encoding="utf-8",
    )
    logger.info(f"Report saved to {report_path}")
    return report_path


def load_report(path: str | Path) -> RunReport:
    """Read a JSON report written by save_report."""
    report_path = Path(path)
    try:
        data = json.loads(report_path.read_text(encoding="utf-8"))
        return RunReport.from_dict(data)
    except OSError as e:
        raise LLMBenchError(f"Cannot read report {report_path}: {e}", "invalid_report") from e
    except (ValueError, KeyError, TypeError) as e:
        raise LLMBenchError(f"Invalid report {report_path}: {e}", "invalid_report") from e


def report_to_csv(report: RunReport) -> str:
    """One row per model."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for r in report.results:
        writer.writerow(
            [
                r.model,
                f"{r.tokens_per_second:.2f}",
                f"{r.first_token_latency_ms:.2f}",
                f"{r.total_latency_ms:.2f}",
                f"{r.aggregate.min_tokens_per_second:.2f}",
                f"{r.aggregate.max_tokens_per_second:.2f}",
                f"{r.aggregate.standard_deviation:.2f}",
                r.sample_count,
                f"{r.memory.peak_mb:.2f}",
                f"{r.memory.average_mb:.2f}",
                f"{r.memory.efficiency:.2f}",
                f"{r.quality.completion_rate:.1f}",
                f"{r.quality.average_response_length:.1f}",
                f"{r.quality.consistency:.1f}",
            ]
        )
    return buffer.getvalue()


def _fmt_change(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"{value:+.1f}%"


def format_system_info(
    profile: SystemProfile,
    tiers: Sequence[ModelTier] = MODEL_TIERS,
) -> str:
    score = hardware_score(profile)
    tier = tier_for(profile.total_memory_gb, tiers)
    cpu = profile.cpu

    lines = [
        "System Information:",
        f"  OS: {profile.os_name} ({profile.architecture})",
        f"  CPU: {cpu.brand} ({cpu.physical_cores} cores @ {cpu.clock_mhz / 1000:.2f}GHz)",
        f"  Total RAM: {profile.total_memory_gb:.1f}GB",
        f"  Available RAM: {profile.available_memory_gb:.1f}GB "
        f"({score.effective_memory_gb:.1f}GB effective)",
        f"  RAM Tier: {tier.name if tier else 'below minimum (4GB)'}",
    ]

    if profile.accelerators:
        lines.append("  GPUs:")
        for index, acc in enumerate(profile.accelerators, start=1):
            line = f"    {index}. {acc.vendor} {acc.model} ({acc.memory_mb}MB VRAM)"
            if acc.cuda_capable:
                line += f" - CUDA {acc.compute_capability}"
            lines.append(line)
    else:
        lines.append("  GPUs: None detected")

    lines.append(
        f"  Hardware Score: {score.score:.1f}/100 "
        f"(CPU: {score.cpu_score:.1f}, GPU: {score.gpu_score:.1f}, RAM: {score.ram_score:.1f})"
    )
    server = (
        f"v{profile.inference_server_version}"
        if profile.inference_server_reachable
        else "Not detected"
    )
    lines.append(f"  Ollama: {server}")
    return "\n".join(lines)


def format_summary(report: RunReport, include_system_info: bool = True) -> str:
    """Markdown summary of a run."""
    summary = report.summary
    system = report.system
    lines = [
        "# Benchmark Results Summary",
        "",
        f"**Date:** {summary.completed_at.isoformat()}",
        f"**Models Tested:** {summary.total_models}",
        f"**Total Benchmarks:** {summary.total_samples}",
        f"**Duration:** {report.metadata.duration_ms / 1000:.1f}s",
        "",
    ]

    if not summary.has_data:
        lines.append("No model produced any successful samples.")
    else:
        lines += [
            f"**Fastest Model:** {summary.fastest_model}",
            f"**Slowest Model:** {summary.slowest_model}",
            f"**Average Speed:** {summary.average_tokens_per_second:.1f} tokens/sec",
            "",
            "| Model | Tokens/s | First token (ms) | Total (ms) | Std dev | Consistency |",
            "|---|---|---|---|---|---|",
        ]
        for r in report.results:
            lines.append(
                f"| {r.model} | {r.tokens_per_second:.1f} | {r.first_token_latency_ms:.0f} "
                f"| {r.total_latency_ms:.0f} | {r.aggregate.standard_deviation:.2f} "
                f"| {r.quality.consistency:.1f} |"
            )

    if not include_system_info:
        return "\n".join(lines)

    lines += [
        "",
        "## System Information",
        f"- OS: {system.os_name} ({system.architecture})",
        f"- RAM: {system.total_memory_gb:.1f}GB total, {system.available_memory_gb:.1f}GB available",
        f"- Ollama: {system.inference_server_version or 'Not detected'}",
    ]
    if system.accelerators:
        lines.append("- GPUs:")
        for acc in system.accelerators:
            lines.append(f"  - {acc.vendor} {acc.model} ({acc.memory_mb}MB VRAM)")

    return "\n".join(lines)


def format_comparison(comparison: ComparisonReport) -> str:
    """Markdown table of per-model changes."""
    lines = [
        "# Benchmark Comparison",
        "",
        f"**Baseline:** {comparison.baseline.completed_at.isoformat()} "
        f"({comparison.baseline.total_models} models)",
        f"**Current:** {comparison.current.completed_at.isoformat()} "
        f"({comparison.current.total_models} models)",
        "",
    ]

    if not comparison.applicable:
        lines.append("No models in common: comparison not applicable.")
        return "\n".join(lines)

    lines += [
        "| Model | Tokens/s | Change | First token (ms) | Change | Memory (MB) | Change |",
        "|---|---|---|---|---|---|---|",
    ]
    for c in comparison.comparisons:
        lines.append(
            f"| {c.model} "
            f"| {c.tokens_per_second.baseline:.1f} -> {c.tokens_per_second.current:.1f} "
            f"| {_fmt_change(c.tokens_per_second.change)} "
            f"| {c.first_token_latency.baseline:.0f} -> {c.first_token_latency.current:.0f} "
            f"| {_fmt_change(c.first_token_latency.change)} "
            f"| {c.memory_usage.baseline:.1f} -> {c.memory_usage.current:.1f} "
            f"| {_fmt_change(c.memory_usage.change)} |"
        )

    lines += [
        "",
        f"**Models Compared:** {comparison.models_compared}",
        f"**Average Speed Improvement:** {_fmt_change(comparison.average_speed_improvement)}",
        f"**Average Latency Improvement:** {_fmt_change(comparison.average_latency_improvement)}",
    ]
    return "\n".join(lines)


def render_report(
    report: RunReport,
    fmt: str,
    include_samples: bool = True,
    include_system_info: bool = True,
) -> str:
    """Render a report in one of: json, csv, markdown."""
    if fmt == "json":
        return report_to_json(report, include_samples, include_system_info)
    if fmt == "csv":
        return report_to_csv(report)
    if fmt in ("markdown", "md"):
        return format_summary(report, include_system_info)
    raise LLMBenchError(f"Unsupported report format: {fmt}", "validation_error")


def render_comparison(comparison: ComparisonReport, fmt: str) -> str:
    """Render a comparison as json or markdown."""
    if fmt == "json":
        return json.dumps(comparison.to_dict(), indent=2)
    if fmt in ("markdown", "md"):
        return format_comparison(comparison)
    raise LLMBenchError(f"Unsupported comparison format: {fmt}", "validation_error")
