"""
Benchmark Runner

Drives an Ollama-compatible server through a controlled workload:
model existence check, warmup, then timed iterations over a prompt set.
Calls run strictly one at a time so per-call latency is not polluted by
server-side queueing.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import psutil

from llmbench.core.exceptions import (
    CallFailedError,
    ConfigError,
    ModelNotAvailableError,
    ServerUnavailableError,
)
from llmbench.services.ollama import OllamaClient
from llmbench.system.profile import SystemProfile

from .config import BenchmarkConfig, GenerationOptions
from .metrics import ModelAggregate, SampleMetric, aggregate, tokens_per_second, truncate_prompt

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class RunState(Enum):
    """Benchmark runner lifecycle"""

    IDLE = "idle"
    ENSURING_MODEL = "ensuring_model"
    WARMUP = "warmup"
    MEASURING = "measuring"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BenchmarkTask:
    """One (model, prompt, iteration) unit of work"""

    model: str
    prompt: str
    iteration: int
    timeout_seconds: float


@dataclass(frozen=True)
class CallFailure:
    """Why a task produced no sample"""

    model: str
    prompt: str
    iteration: int
    reason: str
    timed_out: bool = False


@dataclass(frozen=True)
class CallResult:
    """Outcome of one task: exactly one of sample / failure is set"""

    sample: SampleMetric | None = None
    failure: CallFailure | None = None

    @property
    def ok(self) -> bool:
        return self.sample is not None


class BenchmarkObserver:
    """Progress hooks invoked by the runner. Override what you need."""

    def on_state_change(self, model: str | None, state: RunState) -> None:
        pass

    def on_task_complete(self, model: str, iteration: int, outcome: CallResult) -> None:
        pass


class LoggingObserver(BenchmarkObserver):
    """Reports progress through the module logger."""

    def on_state_change(self, model: str | None, state: RunState) -> None:
        if model:
            logger.info(f"[{model}] {state.value}")
        else:
            logger.info(f"Benchmark {state.value}")

    def on_task_complete(self, model: str, iteration: int, outcome: CallResult) -> None:
        if outcome.sample is not None:
            s = outcome.sample
            logger.info(
                f"[{model}] iteration {iteration + 1}: {s.tokens_per_second:.1f} tok/s, "
                f"first token {s.first_token_latency_ms:.0f}ms, total {s.total_latency_ms:.0f}ms"
            )
        elif outcome.failure is not None:
            logger.warning(f"[{model}] iteration {iteration + 1} dropped: {outcome.failure.reason}")


def host_memory_used_mb() -> float:
    """Host-wide used memory; the inference server runs in its own process."""
    return psutil.virtual_memory().used / BYTES_PER_MB


class BenchmarkRunner:
    """
    Executes benchmarks against an inference server.

    The client must already be open (inside its async context).
    """

    def __init__(
        self,
        client: OllamaClient,
        observer: BenchmarkObserver | None = None,
        memory_sampler: Callable[[], float] | None = None,
        profile: SystemProfile | None = None,
    ):
        self.client = client
        self.observer = observer or BenchmarkObserver()
        self.memory_sampler = memory_sampler or host_memory_used_mb
        self.profile = profile
        self.state = RunState.IDLE

    def _set_state(self, state: RunState, model: str | None = None) -> None:
        self.state = state
        self.observer.on_state_change(model, state)

    async def run(self, config: BenchmarkConfig) -> list[ModelAggregate]:
        """Benchmark every configured model in order.

        Raises:
            ConfigError: if the configuration is invalid
            ServerUnavailableError: if the probed profile reports no server
            ModelNotAvailableError: if a model is not installed; aborts the run
        """
        valid, error = config.validate()
        if not valid:
            raise ConfigError(error)

        if self.profile is not None and not self.profile.inference_server_reachable:
            self._set_state(RunState.FAILED)
            raise ServerUnavailableError(self.client.base_url)

        results: list[ModelAggregate] = []
        current: str | None = None
        try:
            for model in config.models:
                current = model
                result = await self._run_model(model, config)
                if result is not None:
                    results.append(result)
                else:
                    logger.warning(f"Model {model} produced no successful samples, omitted")
        except BaseException:
            # includes cancellation; completed aggregates are discarded with the run
            self._set_state(RunState.FAILED, current)
            raise

        self._set_state(RunState.DONE)
        return results

    async def _run_model(self, model: str, config: BenchmarkConfig) -> ModelAggregate | None:
        self._set_state(RunState.ENSURING_MODEL, model)
        await self.ensure_model(model)

        options = config.options
        if config.warmup_iterations > 0:
            self._set_state(RunState.WARMUP, model)
            await self._run_warmup(model, config.prompts[0], config, options)

        self._set_state(RunState.MEASURING, model)
        samples: list[SampleMetric] = []
        for iteration in range(config.iterations):
            for prompt in config.prompts:
                task = BenchmarkTask(model, prompt, iteration, config.timeout_seconds)
                outcome = await self.execute(task, options)
                if outcome.sample is not None:
                    samples.append(outcome.sample)
                self.observer.on_task_complete(model, iteration, outcome)

        if not samples:
            return None
        return aggregate(model, samples)

    async def ensure_model(self, model: str) -> None:
        """Fail unless the model is installed. Never pulls."""
        if not await self.client.model_exists(model):
            raise ModelNotAvailableError(model)

    async def _run_warmup(
        self,
        model: str,
        prompt: str,
        config: BenchmarkConfig,
        options: GenerationOptions,
    ) -> None:
        """Warmup calls; results and failures are discarded"""
        logger.debug(f"Running {config.warmup_iterations} warmup requests for {model}")
        for i in range(config.warmup_iterations):
            outcome = await self.execute(
                BenchmarkTask(model, prompt, i, config.timeout_seconds), options
            )
            if outcome.failure is not None:
                logger.debug(f"Warmup request failed for {model}: {outcome.failure.reason}")

    async def execute(
        self,
        task: BenchmarkTask,
        options: GenerationOptions | None = None,
    ) -> CallResult:
        """Run one timed call. Never raises for per-call failures."""
        options = options or GenerationOptions()
        memory_before = self.memory_sampler()
        start_time = time.perf_counter()

        try:
            response = await asyncio.wait_for(
                self.client.generate(task.model, task.prompt, options.to_dict()),
                timeout=task.timeout_seconds,
            )
        except TimeoutError:
            logger.debug(f"Request to {task.model} timed out after {task.timeout_seconds}s")
            return CallResult(
                failure=CallFailure(
                    task.model, task.prompt, task.iteration, "request timeout", timed_out=True
                )
            )
        except CallFailedError as e:
            logger.debug(f"Request to {task.model} failed: {e.reason}")
            return CallResult(
                failure=CallFailure(task.model, task.prompt, task.iteration, e.reason)
            )

        total_latency_ms = (time.perf_counter() - start_time) * 1000
        memory_after = self.memory_sampler()

        sample = SampleMetric(
            model=task.model,
            prompt=truncate_prompt(task.prompt),
            iteration=task.iteration,
            tokens_per_second=tokens_per_second(response.eval_count, response.eval_ms),
            first_token_latency_ms=response.prompt_eval_ms,
            total_latency_ms=total_latency_ms,
            prompt_tokens=response.prompt_eval_count,
            completion_tokens=response.eval_count,
            memory_delta_mb=memory_after - memory_before,
        )
        return CallResult(sample=sample)

    async def run_concurrent(
        self,
        model: str,
        prompt: str,
        concurrency: int,
        timeout_seconds: float,
        options: GenerationOptions | None = None,
    ) -> list[SampleMetric]:
        """Fire `concurrency` simultaneous calls for one (model, prompt).

        Opt-in load mode; per-call metrics include server-side queueing.
        Failed calls are dropped. Does not change runner state.
        """
        if concurrency < 1:
            raise ConfigError("Concurrency must be at least 1", field="concurrency")

        tasks = [
            self.execute(BenchmarkTask(model, prompt, index, timeout_seconds), options)
            for index in range(concurrency)
        ]
        outcomes = await asyncio.gather(*tasks)
        return [o.sample for o in outcomes if o.sample is not None]
