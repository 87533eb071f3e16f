"""Ollama API client.

Thin async wrapper over the four Ollama endpoints the benchmark needs:
version, show, pull and generate (plus tags for listing installed models).
"""

import logging
import math
from dataclasses import dataclass
from typing import Any

import httpx

from llmbench.core.exceptions import (
    CallFailedError,
    ModelNotAvailableError,
    ServerUnavailableError,
)

logger = logging.getLogger(__name__)

OLLAMA_DEFAULT_URL = "http://localhost:11434"

NS_PER_MS = 1_000_000


@dataclass
class GenerateResponse:
    """Timing and token counts reported by the server for one generate call"""

    model: str
    response: str = ""
    prompt_eval_count: int = 0
    prompt_eval_duration_ns: int = 0
    eval_count: int = 0
    eval_duration_ns: int = 0
    total_duration_ns: int = 0
    load_duration_ns: int = 0

    @property
    def prompt_eval_ms(self) -> float:
        return self.prompt_eval_duration_ns / NS_PER_MS

    @property
    def eval_ms(self) -> float:
        return self.eval_duration_ns / NS_PER_MS

    @classmethod
    def from_payload(cls, model: str, data: Any) -> "GenerateResponse":
        """Build from a decoded /api/generate body, rejecting malformed payloads."""
        if not isinstance(data, dict):
            raise CallFailedError(model, "malformed response: expected a JSON object")

        def count(key: str) -> int:
            value = data.get(key) or 0
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or (isinstance(value, float) and not math.isfinite(value))
                or value < 0
            ):
                raise CallFailedError(model, f"malformed response: invalid '{key}'")
            return int(value)

        return cls(
            model=data.get("model") or model,
            response=data.get("response") or "",
            prompt_eval_count=count("prompt_eval_count"),
            prompt_eval_duration_ns=count("prompt_eval_duration"),
            eval_count=count("eval_count"),
            eval_duration_ns=count("eval_duration"),
            total_duration_ns=count("total_duration"),
            load_duration_ns=count("load_duration"),
        )


class OllamaClient:
    """Client for an Ollama-compatible inference server.

    Use as an async context manager; one connection pool is shared by all calls.
    """

    def __init__(
        self,
        base_url: str = OLLAMA_DEFAULT_URL,
        timeout: float = 300.0,
        control_timeout: float = 5.0,
        pull_timeout: float = 1800.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.control_timeout = control_timeout
        self.pull_timeout = pull_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "OllamaClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("OllamaClient must be used as an async context manager")
        return self._client

    async def get_version(self) -> str | None:
        """Return the server version, or None if the server is unreachable."""
        try:
            response = await self.client.get("/api/version", timeout=self.control_timeout)
        except httpx.HTTPError as e:
            logger.debug(f"Version check against {self.base_url} failed: {e}")
            return None

        if not response.is_success:
            logger.debug(f"Version check returned HTTP {response.status_code}")
            return None

        try:
            return str(response.json().get("version") or "unknown")
        except (ValueError, AttributeError):
            return "unknown"

    async def is_running(self) -> bool:
        """Check if the server answers the version endpoint."""
        return await self.get_version() is not None

    async def model_exists(self, model: str) -> bool:
        """Existence probe via /api/show: 2xx means installed."""
        try:
            response = await self.client.post(
                "/api/show",
                json={"name": model},
                timeout=self.control_timeout,
            )
        except httpx.HTTPError as e:
            raise ModelNotAvailableError(model, f"existence check failed: {e}") from e
        return response.is_success

    async def list_models(self) -> list[dict]:
        """List installed models."""
        try:
            response = await self.client.get("/api/tags", timeout=self.control_timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ServerUnavailableError(self.base_url) from e
        return response.json().get("models", [])

    async def pull_model(self, model: str) -> None:
        """Download a model, waiting for completion.

        Raises:
            CallFailedError: if the server rejects the pull or the connection fails
        """
        logger.info(f"Pulling model: {model}")
        try:
            response = await self.client.post(
                "/api/pull",
                json={"name": model, "stream": False},
                timeout=self.pull_timeout,
            )
        except httpx.HTTPError as e:
            raise CallFailedError(model, f"pull failed: {e}") from e

        if not response.is_success:
            raise CallFailedError(
                model, f"pull failed: HTTP {response.status_code}", response.status_code
            )

        try:
            status = response.json().get("status", "")
        except (ValueError, AttributeError):
            status = ""
        if status and status != "success":
            raise CallFailedError(model, f"pull finished with status '{status}'")

        logger.info(f"Model {model} pulled")

    async def generate(
        self,
        model: str,
        prompt: str,
        options: dict[str, Any] | None = None,
    ) -> GenerateResponse:
        """Run one non-streaming generation.

        Raises:
            CallFailedError: on non-2xx responses, transport errors or malformed bodies
        """
        request_body: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
        }
        if options:
            request_body["options"] = options

        try:
            response = await self.client.post("/api/generate", json=request_body)
        except httpx.TimeoutException as e:
            raise CallFailedError(model, "request timeout") from e
        except httpx.HTTPError as e:
            raise CallFailedError(model, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise CallFailedError(model, f"HTTP {response.status_code}", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise CallFailedError(model, "malformed response: invalid JSON") from e

        return GenerateResponse.from_payload(model, data)
