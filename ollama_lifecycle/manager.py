"""Day-two model maintenance: remove, update, optimize, cleanup."""

import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx

from ._utils import clear_directory, directory_size, logger, memory_usage_percent, prune_files
from .backup import ArchiveManager
from .client import OllamaClient
from .config import LifecycleConfig
from .exceptions import ServiceUnavailableError, UserAbortedError
from .installer import ModelInstaller
from .models import InstallResult, InstallStatus, ServiceStatus
from .registry import ModelRegistry


class ModelManager:
    """Operations on already-installed models."""

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        client: Optional[OllamaClient] = None,
        installer: Optional[ModelInstaller] = None,
        archive_manager: Optional[ArchiveManager] = None,
    ):
        self.config = config or LifecycleConfig()
        self.client = client or OllamaClient(self.config.service)
        self.registry = ModelRegistry(self.client)
        self.installer = installer or ModelInstaller(self.client, self.registry, self.config.install)
        self.archive_manager = archive_manager or ArchiveManager(self.registry, self.config.storage)

    async def _require_service(self) -> None:
        if not await self.client.ping():
            raise ServiceUnavailableError("Ollama service not available", url=self.client.tags_url)

    async def status(self) -> ServiceStatus:
        models_dir = Path(self.config.storage.models_dir)
        if not await self.client.ping():
            return ServiceStatus(api_available=False)
        return ServiceStatus(
            api_available=True,
            models=await self.registry.list_models(),
            storage_used=await asyncio.to_thread(directory_size, models_dir) if models_dir.is_dir() else None,
            memory_usage=memory_usage_percent(),
        )

    async def install(self, name: str) -> InstallResult:
        await self._require_service()
        return await self.installer.install(name)

    async def remove(
        self,
        name: str,
        force: bool = False,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> bool:
        """Delete a model from the service.

        Returns:
            True if removed, False if the service does not know the model

        Raises:
            UserAbortedError: Neither ``force`` nor a confirmation was given
            ServiceUnavailableError: The API is not reachable
        """
        await self._require_service()
        if not force and (confirm is None or confirm(f"Are you sure you want to remove {name}?") is not True):
            logger.info(f"Removal of {name} cancelled")
            raise UserAbortedError(f"Removal of {name} not confirmed")

        logger.info(f"Removing model: {name}")
        try:
            removed = await self.client.delete_model(name)
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to remove {name}: {e}")
            return False
        if removed:
            logger.info(f"Successfully removed model: {name}")
        else:
            logger.warning(f"Model not found: {name}")
        return removed

    async def update(self, name: str, install_if_missing: bool = False) -> InstallResult:
        """Re-pull an installed model to pick up a newer version."""
        await self._require_service()
        if not await self.registry.exists(name):
            if not install_if_missing:
                logger.warning(f"Model {name} not found locally")
                return InstallResult(
                    model=name,
                    status=InstallStatus.FAILED,
                    attempts=0,
                    elapsed=0.0,
                    error="model not installed",
                )
            logger.info(f"Model {name} not found locally, installing")
        else:
            logger.info(f"Updating model: {name}")
        return await self.installer.install(name)

    async def optimize(self) -> List[str]:
        """Clear temporary caches and probe each model.

        Returns:
            Names of models whose metadata could not be read (possibly corrupted)
        """
        await self._require_service()
        models = await self.registry.names()
        if not models:
            logger.warning("No models to optimize")
            return []

        cleared = clear_directory(Path(self.config.storage.tmp_dir))
        logger.info(f"Cleared {cleared} temporary cache entries")

        corrupted = []
        for name in models:
            try:
                await self.client.show_model(name)
            except (ServiceUnavailableError, httpx.HTTPStatusError) as e:
                logger.warning(f"Model {name} failed integrity probe: {e}")
                corrupted.append(name)

        if corrupted:
            logger.warning(f"Found potentially corrupted models: {', '.join(corrupted)}")
        else:
            logger.info("All models appear healthy")
        logger.info("Model optimization completed")
        return corrupted

    async def cleanup(self) -> Dict[str, int]:
        storage = self.config.storage
        result = {
            "tmp_entries": clear_directory(Path(storage.tmp_dir)),
            "log_files": prune_files(Path(storage.log_dir), "*.log", storage.max_log_files),
            "backups": self.archive_manager.clean_backups(),
        }
        logger.info(
            f"Cleanup completed: {result['tmp_entries']} temporary entries, "
            f"{result['log_files']} log files, {result['backups']} backups removed"
        )
        return result
