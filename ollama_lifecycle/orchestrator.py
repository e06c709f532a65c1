"""Startup sequencing: serve, wait for readiness, install, mark ready."""

import asyncio
import contextlib
import json
import shutil
import signal
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from ._utils import clear_directory, format_bytes, free_space, logger
from .client import OllamaClient
from .config import LifecycleConfig
from .exceptions import InsufficientModelsError, LifecycleError, ServiceUnavailableError
from .installer import ModelInstaller
from .models import InstallationSummary
from .process import ServeProcess
from .readiness import ReadinessWaiter
from .registry import ModelRegistry


class LifecycleOrchestrator:
    """Bring the model service from process start to "models ready".

    Partial installation is not fatal: the service proceeds in degraded mode
    with a warning unless fewer than ``install.hard_minimum`` models were
    installed.
    """

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        client: Optional[OllamaClient] = None,
        serve_process: Optional[ServeProcess] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or LifecycleConfig()
        self.client = client or OllamaClient(self.config.service)
        self.registry = ModelRegistry(self.client)
        self.waiter = ReadinessWaiter(self.client, self.config.readiness, sleep=sleep)
        self.installer = ModelInstaller(self.client, self.registry, self.config.install, sleep=sleep)
        self.serve_process = serve_process
        self.ready_marker = Path(self.config.storage.ready_marker)
        self._stop_event: Optional[asyncio.Event] = None
        self._shutdown_task: Optional[asyncio.Future] = None

    @property
    def stop_event(self) -> asyncio.Event:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        return self._stop_event

    def clean_partial_downloads(self) -> int:
        """Remove interrupted blob downloads and the service tmp dir contents."""
        removed = 0
        blobs = Path(self.config.storage.models_dir) / "blobs"
        if blobs.is_dir():
            for partial in blobs.glob("*-partial*"):
                if partial.is_dir():
                    shutil.rmtree(partial, ignore_errors=True)
                else:
                    partial.unlink(missing_ok=True)
                removed += 1
        removed += clear_directory(Path(self.config.storage.tmp_dir))
        if removed:
            logger.info(f"Removed {removed} partial download(s) and temporary file(s)")
        return removed

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or a platform without signal support
                logger.debug(f"Cannot install handler for {sig!r}")

    def _handle_signal(self, sig: int) -> None:
        logger.info(f"Received {signal.Signals(sig).name}, shutting down Ollama service")
        self.stop_event.set()
        if self._shutdown_task is None or self._shutdown_task.done():
            self._shutdown_task = asyncio.ensure_future(self.shutdown())

    async def shutdown(self) -> None:
        self.stop_event.set()
        if self.serve_process is not None:
            await self.serve_process.stop()

    def write_ready_marker(self, summary: InstallationSummary) -> None:
        self.ready_marker.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "ready_at": datetime.now(timezone.utc).isoformat(),
            "installed": summary.succeeded,
            "failed": summary.failed,
            "meets_minimum": summary.meets_minimum,
        }
        self.ready_marker.write_text(json.dumps(payload, indent=2))
        logger.info(f"Ready marker written: {self.ready_marker}")

    def log_summary(self, summary: InstallationSummary) -> None:
        logger.info("INSTALLATION SUMMARY")
        logger.info(f"Successfully installed ({summary.succeeded_count}): {', '.join(summary.succeeded) or '-'}")
        if summary.failed:
            logger.warning(f"Failed to install ({summary.failed_count}): {', '.join(summary.failed)}")
        if summary.meets_minimum:
            logger.info("Minimum model requirements met")
        else:
            logger.warning(
                f"Less than {summary.threshold} models installed successfully, "
                "service may have limited functionality"
            )

    async def run(self, models: Optional[Iterable[str]] = None, serve: bool = True) -> InstallationSummary:
        """Run the startup sequence once.

        Args:
            models: Model set to install; defaults to ``install.models``
            serve: Start the supervised serve process first, if one is set

        Returns:
            InstallationSummary of the model set

        Raises:
            ServiceUnavailableError: Readiness timed out or the final check failed
            InsufficientModelsError: Fewer models than ``install.hard_minimum``
        """
        if serve and self.serve_process is not None:
            await self.serve_process.start()

        readiness = await self.waiter.wait_ready()
        if not readiness.ready:
            await self.shutdown()
            raise ServiceUnavailableError(
                f"Ollama failed to start within {readiness.attempts} attempts",
                url=self.client.tags_url,
            )

        model_set = tuple(models) if models is not None else self.config.install.models
        summary = await self.installer.install_set(model_set)
        self.log_summary(summary)

        hard_minimum = self.config.install.hard_minimum
        if hard_minimum and summary.succeeded_count < hard_minimum:
            await self.shutdown()
            raise InsufficientModelsError(summary.succeeded_count, hard_minimum)

        if not await self.client.ping():
            await self.shutdown()
            raise ServiceUnavailableError("Final health check failed", url=self.client.tags_url)

        try:
            logger.info(f"Currently available models: {', '.join(await self.registry.names()) or 'none'}")
        except ServiceUnavailableError as e:
            logger.warning(f"Could not list models: {e}")

        self.write_ready_marker(summary)
        return summary

    async def serve_forever(self, models: Optional[Iterable[str]] = None, clean_partial: bool = True) -> int:
        """Startup sequence, then keep the serve process running until it exits or a signal arrives.

        A termination signal stops the serve process and returns promptly;
        pulls still in flight are not cancelled.

        Returns:
            Exit code for the hosting process
        """
        self.install_signal_handlers()
        if clean_partial:
            self.clean_partial_downloads()
        try:
            logger.info(f"Free space in model storage: {format_bytes(free_space(Path(self.config.storage.models_dir)))}")
        except OSError as e:
            logger.debug(f"Could not determine free space: {e}")

        run_task = asyncio.ensure_future(self.run(models))
        stop_task = asyncio.ensure_future(self.stop_event.wait())
        done, _ = await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if run_task not in done:
            logger.info("Shutdown requested during startup")
            run_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                try:
                    await run_task
                except LifecycleError as e:
                    logger.warning(f"Startup interrupted: {e}")
            await self._join_shutdown()
            return 0
        stop_task.cancel()
        run_task.result()

        if self.serve_process is None:
            return 0

        logger.info("Keeping Ollama service running")
        returncode = await self.serve_process.wait()
        if self.stop_event.is_set():
            await self._join_shutdown()
            return 0
        logger.warning(f"Serve process exited with code {returncode}")
        return returncode or 0

    async def _join_shutdown(self) -> None:
        """Wait until the serve process is stopped and reaped."""
        if self._shutdown_task is not None:
            await self._shutdown_task
        await self.shutdown()
        if self.serve_process is not None:
            await self.serve_process.wait()
