"""Pydantic models for API responses."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models import HealthCheckResult


class HealthStatus(BaseModel):
    status: str  # "healthy", "degraded", "unhealthy"
    checks: List[HealthCheckResult]
    timestamp: datetime


class BackupSummary(BaseModel):
    backup_id: str
    size_bytes: int
    created_at: datetime
    models_list: Optional[List[str]] = None


class BackupStatus(BaseModel):
    backup_count: int
    backup_total_size: int
    models_dir_size: Optional[int] = None
    available_space: Optional[int] = None
    service_reachable: bool
    model_count: int
    latest_backup: Optional[str] = None


class VerificationStatus(BaseModel):
    backup_id: str
    valid: bool
    reason: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
