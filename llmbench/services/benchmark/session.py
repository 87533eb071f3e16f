"""
Benchmark Session

Probe the host, run the benchmark and assemble the RunReport in one call.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

import httpx

from llmbench.services.ollama import OllamaClient
from llmbench.system.detector import SystemDetector
from llmbench.system.profile import SystemProfile

from .config import BenchmarkConfig
from .report import RunReport, build_run_report
from .runner import BenchmarkObserver, BenchmarkRunner

logger = logging.getLogger(__name__)


async def run_benchmark(
    config: BenchmarkConfig,
    server_url: str,
    observer: BenchmarkObserver | None = None,
    profile: SystemProfile | None = None,
    control_timeout: float = 5.0,
    memory_sampler: Callable[[], float] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunReport:
    """
    Run a complete benchmark and return its report.

    Args:
        config: Resolved benchmark configuration
        server_url: Inference server base URL
        observer: Progress hooks
        profile: Pre-captured system profile; probed when omitted
        control_timeout: Timeout for version / existence checks
        memory_sampler: Override for the per-call memory measurement
        transport: Custom httpx transport (tests)

    Returns:
        RunReport with one result per model that produced samples
    """
    started_at = datetime.now(UTC)

    async with OllamaClient(
        server_url,
        # generate calls are bounded by the runner's per-call timeout
        timeout=config.timeout_seconds + control_timeout,
        control_timeout=control_timeout,
        transport=transport,
    ) as client:
        if profile is None:
            profile = await SystemDetector(client=client).probe()

        runner = BenchmarkRunner(
            client,
            observer=observer,
            memory_sampler=memory_sampler,
            profile=profile,
        )
        aggregates = await runner.run(config)

    report = build_run_report(aggregates, profile, started_at, config.to_dict())
    if not report.summary.has_data:
        logger.warning("Benchmark finished without any successful samples")
    return report
