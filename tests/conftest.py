"""Global pytest configuration and fixtures."""

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ollama_lifecycle.config import InstallConfig, LifecycleConfig, ReadinessConfig, StorageConfig
from ollama_lifecycle.models import Model, ModelState


async def no_sleep(seconds: float) -> None:
    """Drop-in for asyncio.sleep that returns immediately."""
    return None


def make_model(name: str, size: int = 1024) -> Model:
    return Model(name=name, state=ModelState.INSTALLED, size=size)


def populate_models_dir(models_dir: Path, files: int = 3, size: int = 4096) -> None:
    """Fill a fake model store with incompressible blobs and manifests."""
    (models_dir / "blobs").mkdir(parents=True, exist_ok=True)
    manifests = models_dir / "manifests" / "registry.ollama.ai" / "library" / "phi3"
    manifests.mkdir(parents=True, exist_ok=True)
    for i in range(files):
        (models_dir / "blobs" / f"sha256-{i:064d}").write_bytes(os.urandom(size))
    (manifests / "latest").write_text('{"schemaVersion": 2}')


@pytest.fixture
def temp_dir():
    """Create temporary working directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage_config(temp_dir):
    """Storage layout rooted in a temporary directory."""
    return StorageConfig(
        models_dir=str(temp_dir / "ollama" / "models"),
        backup_dir=str(temp_dir / "backups"),
        log_dir=str(temp_dir / "logs"),
        ready_marker=str(temp_dir / ".models_ready"),
        tmp_dir=str(temp_dir / "tmp"),
        staging_dir=str(temp_dir / "staging"),
    )


@pytest.fixture
def lifecycle_config(storage_config):
    return LifecycleConfig(
        readiness=ReadinessConfig(max_attempts=3, interval=0.0, timeout=1.0),
        install=InstallConfig(models=("a:1", "b:1", "c:1"), max_attempts=3, backoff=0.0, min_models=2),
        storage=storage_config,
    )


@pytest.fixture
def mock_client():
    """OllamaClient double with every network call mocked."""
    client = MagicMock()
    client.tags_url = "http://localhost:11434/api/tags"
    client.cli_available = False
    client.ping = AsyncMock(return_value=True)
    client.list_models = AsyncMock(return_value=[])
    client.cli_list_models = AsyncMock(return_value=[])
    client.pull = AsyncMock(return_value=None)
    client.generate = AsyncMock(return_value={"response": "Hi"})
    client.show_model = AsyncMock(return_value={"modelfile": ""})
    client.delete_model = AsyncMock(return_value=True)
    client.version = AsyncMock(return_value="ollama version is 0.5.7")
    return client
