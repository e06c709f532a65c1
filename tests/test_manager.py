"""Tests for ModelManager."""

import os
import httpx
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from ollama_lifecycle.exceptions import ServiceUnavailableError, UserAbortedError
from ollama_lifecycle.manager import ModelManager
from ollama_lifecycle.models import InstallResult, InstallStatus

from tests.conftest import make_model


@pytest.fixture
def installer():
    installer = MagicMock()
    installer.install = AsyncMock(return_value=InstallResult(
        model="phi3:3.8b", status=InstallStatus.SUCCEEDED, attempts=1, elapsed=0.1
    ))
    return installer


@pytest.fixture
def manager(lifecycle_config, mock_client, installer):
    mock_client.list_models = AsyncMock(return_value=[make_model("phi3:3.8b"), make_model("mistral:7b")])
    return ModelManager(lifecycle_config, client=mock_client, installer=installer)


@pytest.mark.asyncio
async def test_status(manager, lifecycle_config):
    Path(lifecycle_config.storage.models_dir).mkdir(parents=True)
    (Path(lifecycle_config.storage.models_dir) / "blob").write_bytes(b"x" * 100)

    status = await manager.status()

    assert status.api_available
    assert status.model_count == 2
    assert status.storage_used == 100


@pytest.mark.asyncio
async def test_status_unavailable(manager, mock_client):
    mock_client.ping = AsyncMock(return_value=False)

    status = await manager.status()

    assert not status.api_available
    assert status.model_count == 0


@pytest.mark.asyncio
async def test_remove_requires_confirmation(manager, mock_client):
    with pytest.raises(UserAbortedError):
        await manager.remove("phi3:3.8b")
    with pytest.raises(UserAbortedError):
        await manager.remove("phi3:3.8b", confirm=lambda prompt: False)
    mock_client.delete_model.assert_not_awaited()


@pytest.mark.asyncio
async def test_remove_confirmed(manager, mock_client):
    prompts = []

    def confirm(prompt):
        prompts.append(prompt)
        return True

    assert await manager.remove("phi3:3.8b", confirm=confirm) is True
    assert "phi3:3.8b" in prompts[0]
    mock_client.delete_model.assert_awaited_once_with("phi3:3.8b")


@pytest.mark.asyncio
async def test_remove_forced_unknown_model(manager, mock_client):
    mock_client.delete_model = AsyncMock(return_value=False)

    assert await manager.remove("missing:1", force=True) is False


@pytest.mark.asyncio
async def test_remove_service_down(manager, mock_client):
    mock_client.ping = AsyncMock(return_value=False)

    with pytest.raises(ServiceUnavailableError):
        await manager.remove("phi3:3.8b", force=True)


@pytest.mark.asyncio
async def test_update_installed_model(manager, installer):
    result = await manager.update("phi3:3.8b")

    assert result.succeeded
    installer.install.assert_awaited_once_with("phi3:3.8b")


@pytest.mark.asyncio
async def test_update_missing_model(manager, installer):
    result = await manager.update("llama3")

    assert not result.succeeded
    assert result.attempts == 0
    installer.install.assert_not_awaited()

    await manager.update("llama3", install_if_missing=True)
    installer.install.assert_awaited_once_with("llama3")


@pytest.mark.asyncio
async def test_optimize_reports_failing_models(manager, mock_client, lifecycle_config):
    tmp_dir = Path(lifecycle_config.storage.tmp_dir)
    tmp_dir.mkdir(parents=True)
    (tmp_dir / "cache.bin").write_bytes(b"x")

    async def show(name):
        if name == "mistral:7b":
            request = httpx.Request("POST", "http://localhost:11434/api/show")
            raise httpx.HTTPStatusError("500", request=request, response=httpx.Response(500, request=request))
        return {"modelfile": ""}

    mock_client.show_model = AsyncMock(side_effect=show)

    assert await manager.optimize() == ["mistral:7b"]
    assert list(tmp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_optimize_without_models(manager, mock_client):
    mock_client.list_models = AsyncMock(return_value=[])

    assert await manager.optimize() == []
    mock_client.show_model.assert_not_awaited()


@pytest.mark.asyncio
async def test_cleanup(manager, lifecycle_config):
    storage = lifecycle_config.storage
    tmp_dir = Path(storage.tmp_dir)
    (tmp_dir / "runner").mkdir(parents=True)
    log_dir = Path(storage.log_dir)
    log_dir.mkdir(parents=True)
    for i in range(12):
        log = log_dir / f"run_{i:02d}.log"
        log.write_text("line\n")
        os.utime(log, (1_700_000_000 + i, 1_700_000_000 + i))
    (log_dir / "notes.txt").write_text("kept")

    result = await manager.cleanup()

    assert result == {"tmp_entries": 1, "log_files": 2, "backups": 0}
    remaining = sorted(p.name for p in log_dir.glob("*.log"))
    assert remaining == [f"run_{i:02d}.log" for i in range(2, 12)]
    assert (log_dir / "notes.txt").exists()
