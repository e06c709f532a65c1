"""Tests for ReadinessWaiter."""

import pytest
from unittest.mock import AsyncMock

from ollama_lifecycle.config import ReadinessConfig
from ollama_lifecycle.readiness import ReadinessWaiter


@pytest.mark.asyncio
async def test_ready_on_first_poll(mock_client):
    sleep = AsyncMock()
    waiter = ReadinessWaiter(mock_client, ReadinessConfig(max_attempts=5, interval=2.0), sleep=sleep)

    result = await waiter.wait_ready()

    assert result.ready is True
    assert result.attempts == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_ready_after_failures(mock_client):
    mock_client.ping = AsyncMock(side_effect=[False, False, True])
    sleep = AsyncMock()
    waiter = ReadinessWaiter(mock_client, ReadinessConfig(max_attempts=5, interval=2.0), sleep=sleep)

    result = await waiter.wait_ready()

    assert result.ready is True
    assert result.attempts == 3
    assert sleep.await_count == 2
    # Fixed interval, no growth
    assert all(call.args[0] == 2.0 for call in sleep.await_args_list)


@pytest.mark.asyncio
async def test_not_ready_after_max_attempts(mock_client):
    mock_client.ping = AsyncMock(return_value=False)
    waiter = ReadinessWaiter(mock_client, ReadinessConfig(max_attempts=4, interval=0.0), sleep=AsyncMock())

    result = await waiter.wait_ready()

    assert result.ready is False
    assert result.attempts == 4
    assert mock_client.ping.await_count == 4


@pytest.mark.asyncio
async def test_overrides_and_endpoint(mock_client):
    mock_client.ping = AsyncMock(return_value=False)
    waiter = ReadinessWaiter(mock_client, ReadinessConfig(), sleep=AsyncMock())

    result = await waiter.wait_ready("http://other:11434/api/tags", max_attempts=2, interval=0.1)

    assert result.attempts == 2
    mock_client.ping.assert_awaited_with("http://other:11434/api/tags", timeout=5.0)
