"""Data models for backup/restore operations."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

SERVICE_UNAVAILABLE = "service_unavailable"


class BackupMetadata(BaseModel):
    """Metadata record stored at the root of every archive."""

    backup_date: datetime = Field(..., description="Backup creation timestamp (UTC)")
    backup_name: str = Field(default="", description="User supplied name, may be empty")
    models_directory: str = Field(..., description="Source model storage directory")
    models_list: List[str] = Field(default_factory=list, description="Installed models at backup time")
    hostname: str = Field(..., description="Host that produced the archive")
    ollama_version: str = Field(default="unknown", description="Version of the model service binary")
    tool_version: str = Field(..., description="ollama-lifecycle version")

    @property
    def service_was_available(self) -> bool:
        return self.models_list != [SERVICE_UNAVAILABLE]


class Backup(BaseModel):
    """A backup archive on disk."""

    backup_id: str
    path: Path
    size_bytes: int
    created_at: datetime
    metadata: Optional[BackupMetadata] = None
    verified: Optional[bool] = None


class CheckResult(BaseModel):
    name: str
    passed: bool
    advisory: bool = False
    detail: str = ""


class VerificationReport(BaseModel):
    """Result of verifying one archive.

    Advisory checks (models directory, metadata entry) never make an archive
    invalid on their own.
    """

    path: Path
    valid: bool
    reason: Optional[str] = None
    checks: List[CheckResult] = Field(default_factory=list)

    @property
    def warnings(self) -> List[CheckResult]:
        return [c for c in self.checks if c.advisory and not c.passed]


class RestoreOutcome(str, Enum):
    RESTORED = "restored"
    ABORTED = "aborted"
    FAILED = "failed"


class RestoreResult(BaseModel):
    outcome: RestoreOutcome
    message: str
    backup_path: Optional[Path] = None
    staged_path: Optional[Path] = None
    metadata: Optional[BackupMetadata] = None

    @property
    def ok(self) -> bool:
        return self.outcome == RestoreOutcome.RESTORED


class StatusReport(BaseModel):
    """Introspection view over backups, storage and the service."""

    backup_dir: Path
    backup_dir_exists: bool
    backup_count: int
    backup_total_size: int
    models_dir: Path
    models_dir_size: Optional[int] = None  # None when the directory is missing
    available_space: Optional[int] = None
    service_reachable: bool
    model_count: int = 0
    latest_backup: Optional[Backup] = None
