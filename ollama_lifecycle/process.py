"""Supervised ``ollama serve`` child process."""

import asyncio
import os
import signal
from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from ._utils import logger


class ServeSettings(BaseSettings):
    """Environment consumed by the model service itself.

    Values are passed through to the child process untouched; nothing in
    this package interprets them.
    """

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 11434
    keep_alive: Optional[str] = None
    max_loaded_models: Optional[int] = None
    num_parallel: Optional[int] = None
    flash_attention: Optional[bool] = None

    def to_env(self) -> Dict[str, str]:
        host = self.host if ":" in self.host else f"{self.host}:{self.port}"
        env = {"OLLAMA_HOST": host}
        if self.keep_alive is not None:
            env["OLLAMA_KEEP_ALIVE"] = self.keep_alive
        if self.max_loaded_models is not None:
            env["OLLAMA_MAX_LOADED_MODELS"] = str(self.max_loaded_models)
        if self.num_parallel is not None:
            env["OLLAMA_NUM_PARALLEL"] = str(self.num_parallel)
        if self.flash_attention is not None:
            env["OLLAMA_FLASH_ATTENTION"] = "1" if self.flash_attention else "0"
        return env


class ServeProcess:
    """Handle for the serving binary running as a child process.

    ``stop`` sends SIGTERM and escalates to SIGKILL after ``stop_timeout``.
    ``wait`` joins the process and returns its exit code.
    """

    def __init__(
        self,
        ollama_bin: str = "ollama",
        settings: Optional[ServeSettings] = None,
        stop_timeout: float = 10.0,
    ):
        self.ollama_bin = ollama_bin
        self.settings = settings or ServeSettings()
        self.stop_timeout = stop_timeout
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process is not None else None

    async def start(self) -> None:
        if self.running:
            return
        env = {**os.environ, **self.settings.to_env()}
        logger.info(f"Starting {self.ollama_bin} serve on {env['OLLAMA_HOST']}")
        self._process = await asyncio.create_subprocess_exec(self.ollama_bin, "serve", env=env)
        logger.info(f"Serve process started (pid {self._process.pid})")

    def send_signal(self, sig: int) -> None:
        if self.running:
            self._process.send_signal(sig)

    async def stop(self, timeout: Optional[float] = None) -> Optional[int]:
        if not self.running:
            return self.returncode
        timeout = self.stop_timeout if timeout is None else timeout
        logger.info(f"Stopping serve process (pid {self._process.pid})")
        self.send_signal(signal.SIGTERM)
        try:
            await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Serve process did not exit within {timeout:g}s, killing")
            self._process.kill()
            await self._process.wait()
        return self._process.returncode

    async def wait(self) -> Optional[int]:
        if self._process is None:
            return None
        return await self._process.wait()
