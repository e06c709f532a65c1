"""Configuration management for ollama-lifecycle."""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional, Tuple


def _parse_models(raw: str) -> Tuple[str, ...]:
    return tuple(m.strip() for m in raw.split(",") if m.strip())


@dataclass(frozen=True)
class ServiceConfig:
    """Connection settings for the wrapped model service."""
    base_url: str = "http://localhost:11434"
    request_timeout: float = 10.0
    ollama_bin: str = "ollama"

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Create config from environment variables."""
        return cls(
            base_url=os.getenv("OLLAMA_API_URL", "http://localhost:11434").rstrip("/"),
            request_timeout=float(os.getenv("OLLAMA_REQUEST_TIMEOUT", "10.0")),
            ollama_bin=os.getenv("OLLAMA_BIN", "ollama"),
        )

    def __post_init__(self):
        """Validate configuration."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")

    @property
    def tags_url(self) -> str:
        return f"{self.base_url}/api/tags"


@dataclass(frozen=True)
class ReadinessConfig:
    """Startup readiness polling."""
    max_attempts: int = 30
    interval: float = 2.0
    timeout: float = 5.0  # per poll

    @classmethod
    def from_env(cls) -> 'ReadinessConfig':
        """Create config from environment variables."""
        return cls(
            max_attempts=int(os.getenv("HEALTH_CHECK_RETRIES", "30")),
            interval=float(os.getenv("HEALTH_CHECK_INTERVAL", "2.0")),
            timeout=float(os.getenv("HEALTH_CHECK_TIMEOUT", "5.0")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.interval < 0:
            raise ValueError(f"interval must be non-negative, got {self.interval}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


@dataclass(frozen=True)
class InstallConfig:
    """Model set and pull retry policy.

    The default model set is empty on purpose: which models are essential is a
    deployment decision and must come from INSTALL_MODELS or the caller.
    """
    models: Tuple[str, ...] = ()
    max_attempts: int = 3
    backoff: float = 10.0
    min_models: int = 3
    hard_minimum: int = 0  # 0 disables the startup hard stop
    concurrency: int = 1

    @classmethod
    def from_env(cls) -> 'InstallConfig':
        """Create config from environment variables."""
        return cls(
            models=_parse_models(os.getenv("INSTALL_MODELS", "")),
            max_attempts=int(os.getenv("PULL_MAX_ATTEMPTS", "3")),
            backoff=float(os.getenv("PULL_BACKOFF", "10.0")),
            min_models=int(os.getenv("MIN_MODELS", "3")),
            hard_minimum=int(os.getenv("HARD_MIN_MODELS", "0")),
            concurrency=int(os.getenv("PULL_CONCURRENCY", "1")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.models, (list, str)):
            # Accept lists and comma strings but store an immutable tuple
            value = _parse_models(self.models) if isinstance(self.models, str) else tuple(self.models)
            object.__setattr__(self, "models", value)
        if self.max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.backoff < 0:
            raise ValueError(f"backoff must be non-negative, got {self.backoff}")
        if self.min_models < 0:
            raise ValueError(f"min_models must be non-negative, got {self.min_models}")
        if self.hard_minimum < 0:
            raise ValueError(f"hard_minimum must be non-negative, got {self.hard_minimum}")
        if self.concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {self.concurrency}")


@dataclass(frozen=True)
class StorageConfig:
    """Filesystem layout and backup retention."""
    models_dir: str = "/root/.ollama/models"
    backup_dir: str = "/app/backups"
    log_dir: str = "/app/logs"
    ready_marker: str = "/app/.models_ready"
    tmp_dir: str = "/tmp/ollama"
    staging_dir: str = field(default_factory=tempfile.gettempdir)
    max_backups: int = 5
    compression_level: int = 6
    min_archive_size: int = 1000
    max_log_files: int = 10

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """Create config from environment variables."""
        return cls(
            models_dir=os.getenv("MODELS_DIR", "/root/.ollama/models"),
            backup_dir=os.getenv("BACKUP_DIR", "/app/backups"),
            log_dir=os.getenv("LOG_DIR", "/app/logs"),
            ready_marker=os.getenv("MODELS_READY_FILE", "/app/.models_ready"),
            tmp_dir=os.getenv("OLLAMA_TMP_DIR", "/tmp/ollama"),
            staging_dir=os.getenv("RESTORE_STAGING_DIR", tempfile.gettempdir()),
            max_backups=int(os.getenv("MAX_BACKUPS", "5")),
            compression_level=int(os.getenv("COMPRESSION_LEVEL", "6")),
            min_archive_size=int(os.getenv("MIN_ARCHIVE_SIZE", "1000")),
            max_log_files=int(os.getenv("MAX_LOG_FILES", "10")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.max_backups <= 0:
            raise ValueError(f"max_backups must be positive, got {self.max_backups}")
        if not 0 <= self.compression_level <= 9:
            raise ValueError(f"compression_level must be between 0 and 9, got {self.compression_level}")
        if self.min_archive_size < 0:
            raise ValueError(f"min_archive_size must be non-negative, got {self.min_archive_size}")
        if self.max_log_files < 0:
            raise ValueError(f"max_log_files must be non-negative, got {self.max_log_files}")


@dataclass(frozen=True)
class HealthConfig:
    """Health check probes."""
    test_model: Optional[str] = None  # None: first installed model
    test_prompt: str = "Hello"
    inference_timeout: float = 15.0

    @classmethod
    def from_env(cls) -> 'HealthConfig':
        """Create config from environment variables."""
        return cls(
            test_model=os.getenv("HEALTH_TEST_MODEL") or None,
            test_prompt=os.getenv("HEALTH_TEST_PROMPT", "Hello"),
            inference_timeout=float(os.getenv("HEALTH_INFERENCE_TIMEOUT", "15.0")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.inference_timeout <= 0:
            raise ValueError(f"inference_timeout must be positive, got {self.inference_timeout}")


@dataclass(frozen=True)
class LifecycleConfig:
    """Main configuration, passed to every component at construction."""
    service: ServiceConfig = field(default_factory=ServiceConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    install: InstallConfig = field(default_factory=InstallConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    health: HealthConfig = field(default_factory=HealthConfig)

    @classmethod
    def from_env(cls) -> 'LifecycleConfig':
        """Create complete config from environment variables."""
        return cls(
            service=ServiceConfig.from_env(),
            readiness=ReadinessConfig.from_env(),
            install=InstallConfig.from_env(),
            storage=StorageConfig.from_env(),
            health=HealthConfig.from_env(),
        )
