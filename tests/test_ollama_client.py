"""
Tests for the Ollama API client.
"""

import httpx
import pytest

from llmbench.core.exceptions import (
    CallFailedError,
    ModelNotAvailableError,
    ServerUnavailableError,
)
from llmbench.services.ollama import GenerateResponse, OllamaClient
from tests.conftest import generate_payload


def unreachable_client() -> OllamaClient:
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    return OllamaClient("http://ollama.test", transport=httpx.MockTransport(refuse))


class TestGenerateResponse:
    def test_converts_durations(self):
        response = GenerateResponse.from_payload(
            "m", generate_payload(eval_count=30, eval_duration=1_500_000_000)
        )

        assert response.eval_count == 30
        assert response.eval_ms == 1500.0
        assert response.prompt_eval_ms == 50.0
        assert response.prompt_eval_count == 12

    def test_missing_counts_default_to_zero(self):
        response = GenerateResponse.from_payload("m", {"response": "hi", "done": True})
        assert response.eval_count == 0
        assert response.eval_ms == 0.0

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "an", "object"],
            {"eval_count": "many"},
            {"eval_count": -3},
            {"eval_duration": True},
            {"eval_count": float("inf")},
            {"eval_duration": float("nan")},
            {"prompt_eval_count": float("-inf")},
        ],
    )
    def test_malformed_payloads(self, payload):
        with pytest.raises(CallFailedError):
            GenerateResponse.from_payload("m", payload)


class TestOllamaClient:
    @pytest.mark.asyncio
    async def test_requires_context(self):
        with pytest.raises(RuntimeError):
            await OllamaClient().get_version()

    @pytest.mark.asyncio
    async def test_version(self, client):
        assert await client.get_version() == "0.5.7"
        assert await client.is_running()

    @pytest.mark.asyncio
    async def test_version_unreachable(self):
        async with unreachable_client() as client:
            assert await client.get_version() is None
            assert not await client.is_running()

    @pytest.mark.asyncio
    async def test_model_exists(self, client):
        assert await client.model_exists("test-model")
        assert not await client.model_exists("other")

    @pytest.mark.asyncio
    async def test_model_exists_network_error(self):
        async with unreachable_client() as client:
            with pytest.raises(ModelNotAvailableError):
                await client.model_exists("test-model")

    @pytest.mark.asyncio
    async def test_list_models(self, client):
        models = await client.list_models()
        assert [m["name"] for m in models] == ["test-model"]

    @pytest.mark.asyncio
    async def test_list_models_unreachable(self):
        async with unreachable_client() as client:
            with pytest.raises(ServerUnavailableError):
                await client.list_models()

    @pytest.mark.asyncio
    async def test_pull(self, client, fake_server):
        await client.pull_model("new-model")

        assert "new-model" in fake_server.models
        path, body = fake_server.requests[-1]
        assert path == "/api/pull"
        assert body == {"name": "new-model", "stream": False}

    @pytest.mark.asyncio
    async def test_generate(self, client, fake_server):
        response = await client.generate("test-model", "hello", {"temperature": 0.1})

        assert response.eval_count == 20
        _, body = fake_server.requests[-1]
        assert body["prompt"] == "hello"
        assert body["options"] == {"temperature": 0.1}

    @pytest.mark.asyncio
    async def test_generate_http_error(self, client, fake_server):
        fake_server.plan = [500]

        with pytest.raises(CallFailedError) as exc:
            await client.generate("test-model", "hello")
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_generate_bad_json(self, client, fake_server):
        fake_server.plan = ["bad-json"]

        with pytest.raises(CallFailedError) as exc:
            await client.generate("test-model", "hello")
        assert "invalid JSON" in exc.value.reason

    @pytest.mark.asyncio
    async def test_generate_network_error(self, client, fake_server):
        fake_server.plan = ["network-error"]

        with pytest.raises(CallFailedError):
            await client.generate("test-model", "hello")
