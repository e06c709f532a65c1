"""Typed client for the Ollama HTTP API, with CLI access for pulls."""

import asyncio
import re
import shutil
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ._utils import logger
from .config import ServiceConfig
from .exceptions import PullFailedError, ServiceUnavailableError
from .models import Model, ModelState

_SIZE_UNITS = {"B": 1, "KB": 1000, "MB": 1000 ** 2, "GB": 1000 ** 3, "TB": 1000 ** 4}
_CLI_SIZE_RE = re.compile(r"\s(\d+(?:\.\d+)?)\s+(B|KB|MB|GB|TB)\b", re.IGNORECASE)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # The service emits nanosecond precision; fromisoformat handles at most micro
    value = re.sub(r"(\.\d{6})\d+", r"\1", value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def parse_tags(payload: Dict[str, Any]) -> List[Model]:
    """Convert a ``GET /api/tags`` body into Model records."""
    models = []
    for entry in payload.get("models") or []:
        name = entry.get("name") or entry.get("model")
        if not name:
            continue
        models.append(Model(
            name=name,
            state=ModelState.INSTALLED,
            size=int(entry.get("size") or 0),
            modified_at=_parse_timestamp(entry.get("modified_at")),
            digest=entry.get("digest"),
        ))
    return models


def parse_cli_list(output: str) -> List[Model]:
    """Parse the table printed by ``ollama list``.

    Only used when the HTTP API cannot be reached; sizes are the rounded
    values the CLI prints.
    """
    models = []
    for line in output.splitlines()[1:]:  # skip header
        parts = line.split()
        if not parts:
            continue
        size = 0
        match = _CLI_SIZE_RE.search(line)
        if match:
            size = int(float(match.group(1)) * _SIZE_UNITS[match.group(2).upper()])
        models.append(Model(name=parts[0], state=ModelState.INSTALLED, size=size))
    return models


class OllamaClient:
    """Async access to a running Ollama service.

    HTTP calls go through httpx. Pulls and the listing fallback shell out to
    the ``ollama`` binary, which is optional: ``cli_available`` reports
    whether it can be used.
    """

    def __init__(self, config: Optional[ServiceConfig] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config or ServiceConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.timeout = self.config.request_timeout
        self._http_client = http_client

    @property
    def tags_url(self) -> str:
        return f"{self.base_url}/api/tags"

    @property
    def cli_available(self) -> bool:
        return shutil.which(self.config.ollama_bin) is not None

    async def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> httpx.Response:
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}{path}"
        timeout = timeout or self.timeout
        try:
            if self._http_client is not None:
                return await self._http_client.request(method, url, timeout=timeout, **kwargs)
            async with httpx.AsyncClient(timeout=timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise ServiceUnavailableError(f"Cannot reach {url}: {e}", url=url) from e

    async def ping(self, url: Optional[str] = None, timeout: Optional[float] = None) -> bool:
        """True when ``GET /api/tags`` (or another health URL) answers HTTP 200."""
        try:
            response = await self._request("GET", url or "/api/tags", timeout=timeout)
        except ServiceUnavailableError:
            return False
        return response.status_code == 200

    async def list_models(self) -> List[Model]:
        response = await self._request("GET", "/api/tags")
        if response.status_code != 200:
            raise ServiceUnavailableError(
                f"Model listing returned HTTP {response.status_code}", url=self.tags_url
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ServiceUnavailableError(f"Model listing is not valid JSON: {e}", url=self.tags_url) from e
        return parse_tags(payload)

    async def generate(self, model: str, prompt: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Single non-streaming generation, used as an inference smoke test."""
        response = await self._request(
            "POST",
            "/api/generate",
            timeout=timeout,
            json={"model": model, "prompt": prompt, "stream": False, "options": {"num_predict": 10}},
        )
        response.raise_for_status()
        return response.json()

    async def show_model(self, name: str) -> Dict[str, Any]:
        response = await self._request("POST", "/api/show", json={"name": name})
        response.raise_for_status()
        return response.json()

    async def delete_model(self, name: str) -> bool:
        """Remove a model. False when the service does not know it."""
        response = await self._request("DELETE", "/api/delete", json={"name": name})
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    async def _run_cli(self, *args: str) -> Tuple[int, str, str]:
        process = await asyncio.create_subprocess_exec(
            self.config.ollama_bin,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def pull(self, model: str) -> None:
        """Run ``ollama pull`` and raise PullFailedError on a nonzero exit."""
        logger.debug(f"Running {self.config.ollama_bin} pull {model}")
        try:
            returncode, _, stderr = await self._run_cli("pull", model)
        except (FileNotFoundError, PermissionError) as e:
            raise PullFailedError(model, f"cannot execute {self.config.ollama_bin}: {e}") from e
        if returncode != 0:
            lines = [line for line in stderr.strip().splitlines() if line.strip()]
            raise PullFailedError(model, lines[-1] if lines else f"exit code {returncode}", returncode)

    async def cli_list_models(self) -> List[Model]:
        """Fallback listing through ``ollama list``."""
        try:
            returncode, stdout, stderr = await self._run_cli("list")
        except (FileNotFoundError, PermissionError) as e:
            raise ServiceUnavailableError(f"cannot execute {self.config.ollama_bin}: {e}") from e
        if returncode != 0:
            raise ServiceUnavailableError(f"ollama list failed: {stderr.strip() or returncode}")
        return parse_cli_list(stdout)

    async def version(self) -> str:
        if not self.cli_available:
            return "unknown"
        try:
            returncode, stdout, _ = await self._run_cli("--version")
        except OSError:
            return "unknown"
        return stdout.strip() if returncode == 0 and stdout.strip() else "unknown"
