"""Tests for HealthChecker."""

import httpx
import pytest
from pathlib import Path
from unittest.mock import AsyncMock

from ollama_lifecycle.exceptions import ServiceUnavailableError
from ollama_lifecycle.health import HealthChecker

from tests.conftest import make_model


def checks_by_name(report):
    return {c.name: c for c in report.checks}


@pytest.mark.asyncio
async def test_healthy_with_all_checks(lifecycle_config, mock_client):
    mock_client.list_models = AsyncMock(return_value=[make_model("phi3:3.8b")])
    Path(lifecycle_config.storage.models_dir).mkdir(parents=True)
    Path(lifecycle_config.storage.ready_marker).write_text("{}")

    report = await HealthChecker(mock_client, config=lifecycle_config).run()

    assert report.healthy
    assert report.status == "healthy"
    checks = checks_by_name(report)
    assert set(checks) == {"api", "models", "ready_marker", "inference", "resources"}
    assert checks["api"].critical and checks["models"].critical
    assert not checks["inference"].critical
    mock_client.generate.assert_awaited_once_with("phi3:3.8b", "Hello", timeout=15.0)


@pytest.mark.asyncio
async def test_api_down_is_unhealthy(lifecycle_config, mock_client):
    mock_client.ping = AsyncMock(return_value=False)

    report = await HealthChecker(mock_client, config=lifecycle_config).run()

    assert not report.healthy
    assert report.status == "unhealthy"
    checks = checks_by_name(report)
    assert not checks["api"].passed
    assert not checks["models"].passed
    mock_client.list_models.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_models_is_unhealthy_and_skips_inference(lifecycle_config, mock_client):
    report = await HealthChecker(mock_client, config=lifecycle_config).run()

    assert not report.healthy
    checks = checks_by_name(report)
    assert "Skipped" in checks["inference"].detail
    mock_client.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_advisory_failures_only_degrade(lifecycle_config, mock_client):
    mock_client.list_models = AsyncMock(return_value=[make_model("phi3:3.8b")])
    request = httpx.Request("POST", "http://localhost:11434/api/generate")
    mock_client.generate = AsyncMock(
        side_effect=httpx.HTTPStatusError("boom", request=request, response=httpx.Response(500, request=request))
    )

    report = await HealthChecker(mock_client, config=lifecycle_config).run()

    assert report.healthy
    assert report.status == "degraded"
    checks = checks_by_name(report)
    assert not checks["ready_marker"].passed
    assert not checks["inference"].passed


@pytest.mark.asyncio
async def test_listing_failure_after_ping(lifecycle_config, mock_client):
    mock_client.list_models = AsyncMock(side_effect=ServiceUnavailableError())

    report = await HealthChecker(mock_client, config=lifecycle_config).run(include_inference=False)

    assert not report.healthy
    assert "inference" not in checks_by_name(report)
