"""Read-only backup endpoints.

Creating and restoring backups replaces the model directory and stays a
command line operation (``ollama-backup``).
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ..dependencies import get_archive_manager
from ..models import BackupStatus, BackupSummary, VerificationStatus
from ...backup import ArchiveManager

router = APIRouter(prefix="/backup", tags=["backup"])


@router.get("", response_model=List[BackupSummary])
async def list_backups(
    archive_manager: ArchiveManager = Depends(get_archive_manager)
) -> List[BackupSummary]:
    """List all available backups, oldest first."""
    return [
        BackupSummary(
            backup_id=b.backup_id,
            size_bytes=b.size_bytes,
            created_at=b.created_at,
            models_list=b.metadata.models_list if b.metadata else None,
        )
        for b in archive_manager.list_backups(include_metadata=True)
    ]


@router.get("/status", response_model=BackupStatus)
async def backup_status(
    archive_manager: ArchiveManager = Depends(get_archive_manager)
) -> BackupStatus:
    report = await archive_manager.status()
    return BackupStatus(
        backup_count=report.backup_count,
        backup_total_size=report.backup_total_size,
        models_dir_size=report.models_dir_size,
        available_space=report.available_space,
        service_reachable=report.service_reachable,
        model_count=report.model_count,
        latest_backup=report.latest_backup.backup_id if report.latest_backup else None,
    )


@router.get("/{backup_id}/verify", response_model=VerificationStatus)
async def verify_backup(
    backup_id: str,
    archive_manager: ArchiveManager = Depends(get_archive_manager)
) -> VerificationStatus:
    backup_path = archive_manager.get_backup_path(backup_id)
    if not backup_path:
        raise HTTPException(status_code=404, detail=f"Backup not found: {backup_id}")

    report = archive_manager.verify_backup(backup_path, silent=True)
    return VerificationStatus(
        backup_id=backup_id,
        valid=report.valid,
        reason=report.reason,
        warnings=[c.detail or c.name for c in report.warnings],
    )


@router.get("/{backup_id}/download")
async def download_backup(
    backup_id: str,
    archive_manager: ArchiveManager = Depends(get_archive_manager)
) -> FileResponse:
    """Download backup archive as .tar.gz file."""
    backup_path = archive_manager.get_backup_path(backup_id)

    if not backup_path:
        raise HTTPException(status_code=404, detail=f"Backup not found: {backup_id}")

    return FileResponse(
        path=backup_path,
        media_type="application/gzip",
        filename=backup_path.name,
        headers={"Content-Disposition": f"attachment; filename={backup_path.name}"}
    )
