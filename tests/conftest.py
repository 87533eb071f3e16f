"""
Test fixtures and configuration for pytest.
"""

import asyncio
import itertools
import json
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import httpx
import pytest
import pytest_asyncio

from llmbench.services.benchmark.metrics import SampleMetric
from llmbench.services.ollama import OllamaClient
from llmbench.system.profile import Accelerator, CPUInfo, SystemProfile

# One second of eval time, so tokens/s equals the completion token count
ONE_SECOND_NS = 1_000_000_000


def generate_payload(
    eval_count: int = 20,
    eval_duration: int = ONE_SECOND_NS,
    prompt_eval_count: int = 12,
    prompt_eval_duration: int = 50_000_000,
) -> dict:
    return {
        "model": "test-model",
        "created_at": "2024-01-01T00:00:00Z",
        "response": "ok " * eval_count,
        "done": True,
        "prompt_eval_count": prompt_eval_count,
        "prompt_eval_duration": prompt_eval_duration,
        "eval_count": eval_count,
        "eval_duration": eval_duration,
        "total_duration": prompt_eval_duration + eval_duration,
    }


class FakeOllama:
    """In-memory Ollama server for httpx.MockTransport.

    Generate replies are taken from `plan` in order, then `default`. A plan
    entry is a payload dict, raw body bytes, an int status code, "hang" (never
    answers in time), "bad-json" or "network-error".
    """

    def __init__(self, models=("test-model",), version: str | None = "0.5.7"):
        self.models = set(models)
        self.version = version
        self.plan: list = []
        self.default = generate_payload()
        self.requests: list[tuple[str, dict]] = []

    @property
    def generate_prompts(self) -> list[str]:
        return [body["prompt"] for path, body in self.requests if path == "/api/generate"]

    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        path = request.url.path
        self.requests.append((path, body))

        if path == "/api/version":
            if self.version is None:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"version": self.version})

        if path == "/api/show":
            if body.get("name") in self.models:
                return httpx.Response(200, json={"details": {}})
            return httpx.Response(404, json={"error": "model not found"})

        if path == "/api/pull":
            self.models.add(body["name"])
            return httpx.Response(200, json={"status": "success"})

        if path == "/api/tags":
            return httpx.Response(
                200, json={"models": [{"name": name, "size": 1024**3} for name in sorted(self.models)]}
            )

        if path == "/api/generate":
            reply = self.plan.pop(0) if self.plan else self.default
            if reply == "hang":
                await asyncio.sleep(10)
                return httpx.Response(200, json=self.default)
            if reply == "bad-json":
                return httpx.Response(200, content=b"not json")
            if reply == "network-error":
                raise httpx.ReadError("connection reset", request=request)
            if isinstance(reply, bytes):
                return httpx.Response(200, content=reply)
            if isinstance(reply, int):
                return httpx.Response(reply, json={"error": "boom"})
            return httpx.Response(200, json=reply)

        return httpx.Response(404)


@pytest.fixture
def fake_server() -> FakeOllama:
    return FakeOllama()


@pytest_asyncio.fixture
async def client(fake_server: FakeOllama) -> AsyncGenerator[OllamaClient, None]:
    """Open client wired to the fake server."""
    async with OllamaClient(
        "http://ollama.test",
        transport=httpx.MockTransport(fake_server.handler),
    ) as ollama:
        yield ollama


@pytest.fixture
def memory_sampler():
    """Memory grows by 2MB across every call."""
    counter = itertools.count(start=100, step=1)
    return lambda: next(counter) * 2.0


def make_profile(
    available_memory_gb: float = 16.0,
    total_memory_gb: float = 32.0,
    accelerators: tuple = (),
    os_name: str = "linux",
    architecture: str = "x64",
    reachable: bool = True,
) -> SystemProfile:
    return SystemProfile(
        total_memory_gb=total_memory_gb,
        available_memory_gb=available_memory_gb,
        os_name=os_name,
        architecture=architecture,
        accelerators=accelerators,
        cpu=CPUInfo(brand="Test CPU", cores=8, physical_cores=4, clock_mhz=3000.0),
        inference_server_version="0.5.7" if reachable else None,
        inference_server_reachable=reachable,
    )


CUDA_GPU = Accelerator(
    vendor="NVIDIA",
    model="NVIDIA GeForce RTX 4090",
    memory_mb=24576,
    driver_version="550.54",
    cuda_capable=True,
    compute_capability="8.9",
)


@pytest.fixture
def cpu_profile() -> SystemProfile:
    return make_profile()


@pytest.fixture
def cuda_profile() -> SystemProfile:
    return make_profile(accelerators=(CUDA_GPU,))


def make_sample(
    model: str = "test-model",
    tokens_per_second: float = 10.0,
    completion_tokens: int = 10,
    prompt_tokens: int = 5,
    first_token_latency_ms: float = 50.0,
    total_latency_ms: float = 1000.0,
    memory_delta_mb: float = 2.0,
    iteration: int = 0,
) -> SampleMetric:
    return SampleMetric(
        model=model,
        prompt="prompt",
        iteration=iteration,
        tokens_per_second=tokens_per_second,
        first_token_latency_ms=first_token_latency_ms,
        total_latency_ms=total_latency_ms,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        memory_delta_mb=memory_delta_mb,
        timestamp=datetime(2024, 1, 1, tzinfo=UTC),
    )
