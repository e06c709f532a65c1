"""Health checks for a running model service."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import httpx

from ._utils import directory_size, format_bytes, logger, memory_usage_percent
from .client import OllamaClient
from .config import LifecycleConfig
from .exceptions import ServiceUnavailableError
from .models import HealthCheckResult, HealthReport, Model
from .registry import ModelRegistry


class HealthChecker:
    """Run critical and advisory checks against the service.

    Critical checks (API reachable, at least one model installed) decide
    ``HealthReport.healthy``. Advisory checks are reported but never flip it.
    """

    def __init__(
        self,
        client: OllamaClient,
        registry: Optional[ModelRegistry] = None,
        config: Optional[LifecycleConfig] = None,
    ):
        self.client = client
        self.registry = registry or ModelRegistry(client)
        self.config = config or LifecycleConfig()

    async def check_api(self) -> HealthCheckResult:
        ok = await self.client.ping(timeout=self.config.readiness.timeout)
        detail = "API is responding" if ok else f"API not responding at {self.client.tags_url}"
        return HealthCheckResult(name="api", passed=ok, critical=True, detail=detail)

    def check_models(self, models: List[Model]) -> HealthCheckResult:
        if models:
            return HealthCheckResult(
                name="models", passed=True, critical=True, detail=f"{len(models)} model(s) available"
            )
        return HealthCheckResult(name="models", passed=False, critical=True, detail="No models available")

    def check_ready_marker(self) -> HealthCheckResult:
        marker = Path(self.config.storage.ready_marker)
        if marker.exists():
            return HealthCheckResult(name="ready_marker", passed=True, critical=False, detail=str(marker))
        return HealthCheckResult(
            name="ready_marker",
            passed=False,
            critical=False,
            detail="Models ready marker not found, installation may be in progress",
        )

    async def check_inference(self, models: List[Model]) -> HealthCheckResult:
        if not models:
            return HealthCheckResult(
                name="inference", passed=False, critical=False, detail="Skipped: no models installed"
            )
        model = self.config.health.test_model or models[0].name
        try:
            response = await self.client.generate(
                model, self.config.health.test_prompt, timeout=self.config.health.inference_timeout
            )
        except (ServiceUnavailableError, httpx.HTTPError, ValueError) as e:
            return HealthCheckResult(
                name="inference", passed=False, critical=False, detail=f"Inference failed with {model}: {e}"
            )
        if not response.get("response"):
            return HealthCheckResult(
                name="inference", passed=False, critical=False, detail=f"Empty response from {model}"
            )
        return HealthCheckResult(name="inference", passed=True, critical=False, detail=f"Inference OK with {model}")

    async def check_resources(self) -> HealthCheckResult:
        models_dir = Path(self.config.storage.models_dir)
        parts = []
        if models_dir.exists():
            size = await asyncio.to_thread(directory_size, models_dir)
            parts.append(f"model storage {format_bytes(size)}")
        else:
            parts.append("model storage missing")
        memory = memory_usage_percent()
        if memory is not None:
            parts.append(f"memory {memory:.1f}% used")
        return HealthCheckResult(name="resources", passed=models_dir.exists(), critical=False, detail=", ".join(parts))

    async def run(self, include_inference: bool = True) -> HealthReport:
        """Run every check and log one line per result.

        Args:
            include_inference: Run the generation smoke test; probes that are
                polled often turn it off
        """
        checks = [await self.check_api()]
        models: List[Model] = []
        if checks[0].passed:
            try:
                models = await self.registry.list_models()
            except ServiceUnavailableError as e:
                logger.warning(f"Could not list models: {e}")
        checks.append(self.check_models(models))
        checks.append(self.check_ready_marker())
        if include_inference:
            checks.append(await self.check_inference(models))
        checks.append(await self.check_resources())

        report = HealthReport(checks=checks, timestamp=datetime.now(timezone.utc))
        for check in checks:
            level = "PASS" if check.passed else ("FAIL" if check.critical else "WARN")
            log = logger.info if check.passed else (logger.error if check.critical else logger.warning)
            log(f"[{level}] {check.name}: {check.detail}")
        logger.info(f"Health status: {report.status}")
        return report
