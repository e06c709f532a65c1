"""Data models for model lifecycle operations."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ModelState(str, Enum):
    ABSENT = "absent"
    PULLING = "pulling"
    INSTALLED = "installed"
    FAILED = "failed"


class InstallStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Model(BaseModel):
    """A model known to the service, or declared for installation."""

    name: str = Field(..., description="Model identifier (name:tag)")
    state: ModelState = ModelState.ABSENT
    size: int = Field(default=0, description="Size in bytes")
    modified_at: Optional[datetime] = None
    digest: Optional[str] = None


class InstallResult(BaseModel):
    """Outcome of installing a single model."""

    model: str
    status: InstallStatus
    attempts: int
    elapsed: float = Field(..., description="Wall time in seconds across all attempts")
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == InstallStatus.SUCCEEDED


class InstallationSummary(BaseModel):
    """Aggregated results of installing a model set, in declared order."""

    results: List[InstallResult] = Field(default_factory=list)
    threshold: int = 0

    @property
    def succeeded(self) -> List[str]:
        return [r.model for r in self.results if r.succeeded]

    @property
    def failed(self) -> List[str]:
        return [r.model for r in self.results if not r.succeeded]

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def meets_minimum(self) -> bool:
        return self.succeeded_count >= self.threshold


class ReadinessResult(BaseModel):
    ready: bool
    attempts: int
    elapsed: float


class HealthCheckResult(BaseModel):
    name: str
    passed: bool
    critical: bool
    detail: str = ""


class HealthReport(BaseModel):
    checks: List[HealthCheckResult] = Field(default_factory=list)
    timestamp: datetime

    @property
    def healthy(self) -> bool:
        return all(c.passed for c in self.checks if c.critical)

    @property
    def status(self) -> str:
        if self.healthy:
            return "healthy" if all(c.passed for c in self.checks) else "degraded"
        return "unhealthy"


class ServiceStatus(BaseModel):
    """Snapshot shown by ``ollama-models status``."""

    api_available: bool
    models: List[Model] = Field(default_factory=list)
    storage_used: Optional[int] = None
    memory_usage: Optional[float] = None

    @property
    def model_count(self) -> int:
        return len(self.models)
