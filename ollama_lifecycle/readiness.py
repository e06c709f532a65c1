"""Poll the service health endpoint until it answers."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from ._utils import logger
from .client import OllamaClient
from .config import ReadinessConfig
from .models import ReadinessResult


class ReadinessWaiter:
    """Wait for the service API to answer HTTP 200.

    Uses a fixed interval between polls. Timing out is reported in the result
    rather than raised: startup flows treat it as fatal, health checks as an
    unhealthy state to report.
    """

    def __init__(
        self,
        client: OllamaClient,
        config: Optional[ReadinessConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or ReadinessConfig()
        self._sleep = sleep

    async def poll_once(self, endpoint: Optional[str] = None) -> bool:
        return await self.client.ping(endpoint, timeout=self.config.timeout)

    async def wait_ready(
        self,
        endpoint: Optional[str] = None,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> ReadinessResult:
        max_attempts = max_attempts or self.config.max_attempts
        interval = self.config.interval if interval is None else interval
        target = endpoint or self.client.tags_url
        attempts = 0
        start = time.monotonic()

        async def poll() -> bool:
            nonlocal attempts
            attempts += 1
            return await self.poll_once(endpoint)

        def log_wait(retry_state: RetryCallState) -> None:
            logger.info(f"Attempt {retry_state.attempt_number}/{max_attempts} - still waiting for {target}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(interval),
            retry=retry_if_result(lambda ok: not ok),
            retry_error_callback=lambda retry_state: False,
            before_sleep=log_wait,
            sleep=self._sleep,
        )
        ready = await retrying(poll)
        elapsed = time.monotonic() - start

        if ready:
            logger.info(f"Service ready after {attempts} attempt(s) ({elapsed:.1f}s)")
        else:
            logger.error(f"Service not ready after {attempts} attempts: {target}")
        return ReadinessResult(ready=ready, attempts=attempts, elapsed=elapsed)
