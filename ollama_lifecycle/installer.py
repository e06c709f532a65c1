"""Pull models with bounded retries and post-pull verification."""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Iterable, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from ._utils import logger
from .client import OllamaClient
from .config import InstallConfig
from .exceptions import PullFailedError, VerificationFailedError
from .models import InstallationSummary, InstallResult, InstallStatus, ModelState
from .registry import ModelRegistry


class ModelInstaller:
    """Install models into the shared model storage.

    A single model's attempts always run one after another. ``install_set``
    may run several models at once when ``concurrency`` > 1; disk space is not
    reserved in that case.
    """

    def __init__(
        self,
        client: OllamaClient,
        registry: ModelRegistry,
        config: Optional[InstallConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.registry = registry
        self.config = config or InstallConfig()
        self._sleep = sleep
        self.states: Dict[str, ModelState] = {}

    async def install(
        self,
        model_id: str,
        max_attempts: Optional[int] = None,
        backoff: Optional[float] = None,
    ) -> InstallResult:
        """Pull ``model_id`` until it is verified or attempts are exhausted.

        A pull that exits cleanly but leaves the model unlisted counts as a
        failed attempt.

        Args:
            model_id: Model identifier (name:tag)
            max_attempts: Override the configured attempt bound
            backoff: Override the configured delay between attempts (seconds)

        Returns:
            InstallResult; never raises for pull failures
        """
        max_attempts = max_attempts or self.config.max_attempts
        backoff = self.config.backoff if backoff is None else backoff
        attempts = 0
        start = time.monotonic()

        async def attempt() -> None:
            nonlocal attempts
            attempts += 1
            self.states[model_id] = ModelState.PULLING
            logger.info(f"Pulling {model_id} (attempt {attempts}/{max_attempts})")
            await self.client.pull(model_id)
            if not await self.registry.verify(model_id):
                raise VerificationFailedError(model_id)

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.warning(
                f"{error} (attempt {retry_state.attempt_number}/{max_attempts}), "
                f"retrying in {backoff:g}s"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(backoff),
            retry=retry_if_exception_type(PullFailedError),
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            await retrying(attempt)
        except PullFailedError as e:
            self.states[model_id] = ModelState.FAILED
            elapsed = time.monotonic() - start
            logger.error(f"Failed to install {model_id} after {attempts} attempts: {e}")
            return InstallResult(
                model=model_id,
                status=InstallStatus.FAILED,
                attempts=attempts,
                elapsed=elapsed,
                error=str(e),
            )

        self.states[model_id] = ModelState.INSTALLED
        elapsed = time.monotonic() - start
        logger.info(f"Installed {model_id} in {elapsed:.1f}s ({attempts} attempt(s))")
        return InstallResult(
            model=model_id,
            status=InstallStatus.SUCCEEDED,
            attempts=attempts,
            elapsed=elapsed,
        )

    async def install_set(
        self,
        model_ids: Iterable[str],
        concurrency: Optional[int] = None,
        threshold: Optional[int] = None,
    ) -> InstallationSummary:
        """Install every model of the set; results keep the declared order."""
        model_ids = tuple(model_ids)
        concurrency = concurrency or self.config.concurrency
        threshold = self.config.min_models if threshold is None else threshold
        for model_id in model_ids:
            self.states.setdefault(model_id, ModelState.ABSENT)

        logger.info(f"Installing {len(model_ids)} model(s): {', '.join(model_ids) or 'none'}")

        if concurrency <= 1:
            results = [await self.install(model_id) for model_id in model_ids]
        else:
            semaphore = asyncio.Semaphore(concurrency)

            async def bounded(model_id: str) -> InstallResult:
                async with semaphore:
                    return await self.install(model_id)

            results = list(await asyncio.gather(*(bounded(m) for m in model_ids)))

        summary = InstallationSummary(results=results, threshold=threshold)
        logger.info(
            f"Installation summary: {summary.succeeded_count} succeeded, "
            f"{summary.failed_count} failed (minimum {threshold}: "
            f"{'met' if summary.meets_minimum else 'NOT met'})"
        )
        return summary
