from .config import LifecycleConfig
from .client import OllamaClient
from .readiness import ReadinessWaiter
from .registry import ModelRegistry
from .installer import ModelInstaller
from .orchestrator import LifecycleOrchestrator
from .backup import ArchiveManager
from .health import HealthChecker
from .manager import ModelManager

__version__ = "0.1.0"
__author__ = "ollama-lifecycle contributors"
__url__ = ""

__all__ = [
    "LifecycleConfig",
    "OllamaClient",
    "ReadinessWaiter",
    "ModelRegistry",
    "ModelInstaller",
    "LifecycleOrchestrator",
    "ArchiveManager",
    "HealthChecker",
    "ModelManager",
]
