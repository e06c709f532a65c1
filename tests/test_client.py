"""Tests for the Ollama API client."""

import json
import httpx
import pytest
from unittest.mock import AsyncMock, patch

from ollama_lifecycle.client import OllamaClient, parse_cli_list, parse_tags
from ollama_lifecycle.config import ServiceConfig
from ollama_lifecycle.exceptions import PullFailedError, ServiceUnavailableError


TAGS_PAYLOAD = {
    "models": [
        {
            "name": "phi3:3.8b",
            "size": 2176178913,
            "modified_at": "2024-06-01T10:15:30.123456789Z",
            "digest": "4f2222927938",
        },
        {"model": "mistral:7b", "size": 4113301824},
    ]
}


def make_client(handler) -> OllamaClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaClient(ServiceConfig(base_url="http://ollama:11434"), http_client=http_client)


def test_parse_tags():
    models = parse_tags(TAGS_PAYLOAD)
    assert [m.name for m in models] == ["phi3:3.8b", "mistral:7b"]
    assert models[0].size == 2176178913
    assert models[0].modified_at.year == 2024
    assert models[0].digest == "4f2222927938"
    assert models[1].modified_at is None


def test_parse_tags_empty():
    assert parse_tags({}) == []
    assert parse_tags({"models": None}) == []


def test_parse_cli_list():
    output = (
        "NAME              ID              SIZE      MODIFIED\n"
        "phi3:3.8b         4f2222927938    2.2 GB    2 days ago\n"
        "nomic-embed-text  0a109f422b47    274 MB    3 weeks ago\n"
    )
    models = parse_cli_list(output)
    assert [m.name for m in models] == ["phi3:3.8b", "nomic-embed-text"]
    assert models[0].size == 2_200_000_000
    assert models[1].size == 274_000_000


@pytest.mark.asyncio
async def test_ping_success():
    client = make_client(lambda request: httpx.Response(200, json={"models": []}))
    assert await client.ping() is True


@pytest.mark.asyncio
async def test_ping_non_200():
    client = make_client(lambda request: httpx.Response(500))
    assert await client.ping() is False


@pytest.mark.asyncio
async def test_ping_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    assert await client.ping() is False


@pytest.mark.asyncio
async def test_list_models():
    def handler(request):
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json=TAGS_PAYLOAD)

    client = make_client(handler)
    models = await client.list_models()
    assert [m.name for m in models] == ["phi3:3.8b", "mistral:7b"]


@pytest.mark.asyncio
async def test_list_models_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(ServiceUnavailableError) as exc_info:
        await client.list_models()
    assert exc_info.value.url == "http://ollama:11434/api/tags"


@pytest.mark.asyncio
async def test_list_models_bad_status():
    client = make_client(lambda request: httpx.Response(503))
    with pytest.raises(ServiceUnavailableError, match="HTTP 503"):
        await client.list_models()


@pytest.mark.asyncio
async def test_generate_sends_non_streaming_request():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"response": "Hello there"})

    client = make_client(handler)
    result = await client.generate("phi3:3.8b", "Hello")
    assert result["response"] == "Hello there"
    assert seen["model"] == "phi3:3.8b"
    assert seen["stream"] is False


@pytest.mark.asyncio
async def test_delete_model():
    def handler(request):
        assert request.method == "DELETE"
        name = json.loads(request.content)["name"]
        return httpx.Response(200 if name == "phi3:3.8b" else 404)

    client = make_client(handler)
    assert await client.delete_model("phi3:3.8b") is True
    assert await client.delete_model("missing:1") is False


@pytest.mark.asyncio
async def test_pull_success():
    client = OllamaClient()
    with patch.object(client, "_run_cli", AsyncMock(return_value=(0, "success", ""))) as run_cli:
        await client.pull("phi3:3.8b")
    run_cli.assert_awaited_once_with("pull", "phi3:3.8b")


@pytest.mark.asyncio
async def test_pull_failure_reports_last_stderr_line():
    client = OllamaClient()
    stderr = "pulling manifest\nError: pull model manifest: file does not exist\n"
    with patch.object(client, "_run_cli", AsyncMock(return_value=(1, "", stderr))):
        with pytest.raises(PullFailedError) as exc_info:
            await client.pull("nope:1")
    assert exc_info.value.model == "nope:1"
    assert exc_info.value.returncode == 1
    assert "file does not exist" in str(exc_info.value)


@pytest.mark.asyncio
async def test_pull_missing_binary():
    client = OllamaClient(ServiceConfig(ollama_bin="/nonexistent/ollama"))
    with pytest.raises(PullFailedError, match="cannot execute"):
        await client.pull("phi3:3.8b")
