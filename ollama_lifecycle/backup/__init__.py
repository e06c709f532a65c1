"""Backup and restore of the model storage directory."""

from .manager import ArchiveManager
from .models import Backup, BackupMetadata, RestoreOutcome, RestoreResult, StatusReport, VerificationReport

__all__ = [
    "ArchiveManager",
    "Backup",
    "BackupMetadata",
    "RestoreOutcome",
    "RestoreResult",
    "StatusReport",
    "VerificationReport",
]
