"""Query layer over the models installed in the service."""

from typing import List, Optional

from ._utils import logger, normalize_model_name
from .client import OllamaClient
from .exceptions import ServiceUnavailableError
from .models import Model


class ModelRegistry:
    """List installed models through the HTTP API.

    When the API cannot be reached and the ``ollama`` binary is on PATH, the
    CLI listing is used instead. Without either, ServiceUnavailableError is
    raised from ``list_models``.
    """

    def __init__(self, client: OllamaClient, allow_cli_fallback: bool = True):
        self.client = client
        self.allow_cli_fallback = allow_cli_fallback

    async def list_models(self) -> List[Model]:
        try:
            return await self.client.list_models()
        except ServiceUnavailableError as e:
            if self.allow_cli_fallback and self.client.cli_available:
                logger.warning(f"Model API unavailable ({e}), falling back to CLI listing")
                return await self.client.cli_list_models()
            raise

    async def names(self) -> List[str]:
        return [m.name for m in await self.list_models()]

    async def get(self, model_id: str) -> Optional[Model]:
        wanted = normalize_model_name(model_id)
        for model in await self.list_models():
            if normalize_model_name(model.name) == wanted:
                return model
        return None

    async def exists(self, model_id: str) -> bool:
        """True if the model is listed. An unreachable service counts as absent."""
        try:
            return await self.get(model_id) is not None
        except ServiceUnavailableError as e:
            logger.warning(f"Cannot check {model_id}: {e}")
            return False

    async def verify(self, model_id: str) -> bool:
        return await self.exists(model_id)

    async def count(self) -> int:
        """Number of installed models; 0 when the service cannot be reached."""
        try:
            return len(await self.list_models())
        except ServiceUnavailableError:
            return 0
