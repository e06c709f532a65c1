"""Backup and restore orchestration for the model storage directory."""

import asyncio
import shutil
import tarfile
import tempfile
import time
import warnings
import zlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from .._utils import directory_size, format_bytes, free_space, hostname, logger
from ..config import StorageConfig
from ..exceptions import ArchiveCorruptError, ArchiveError, InsufficientSpaceWarning, ServiceUnavailableError
from ..registry import ModelRegistry
from .models import (
    SERVICE_UNAVAILABLE,
    Backup,
    BackupMetadata,
    CheckResult,
    RestoreOutcome,
    RestoreResult,
    StatusReport,
    VerificationReport,
)
from .utils import (
    ARCHIVE_SUFFIX,
    METADATA_PREFIX,
    backup_id_from_path,
    create_archive,
    extract_archive,
    find_metadata_file,
    generate_backup_id,
    generate_timestamp,
    list_members,
    load_metadata,
    read_archive_metadata,
    save_metadata,
)

_ARCHIVE_READ_ERRORS = (OSError, EOFError, tarfile.TarError, zlib.error)
_EXTRACT_ERRORS = _ARCHIVE_READ_ERRORS + (ArchiveCorruptError,)

ConfirmCallback = Callable[[str], bool]


class ArchiveManager:
    """Create, verify, list, prune and restore model directory backups.

    Nothing here locks the model directory: running a restore while a pull is
    writing into the same directory is undefined and must be avoided by the
    caller.
    """

    def __init__(self, registry: Optional[ModelRegistry] = None, config: Optional[StorageConfig] = None):
        """Initialize archive manager.

        Args:
            registry: Model registry used for metadata snapshots and the
                restore safety gate. Without one the service is treated as
                unavailable.
            config: Storage layout and retention settings
        """
        self.registry = registry
        self.config = config or StorageConfig()
        self.models_dir = Path(self.config.models_dir)
        self.backup_dir = Path(self.config.backup_dir)
        self.staging_dir = Path(self.config.staging_dir)

    def resolve_path(self, path: Union[str, Path]) -> Path:
        """Resolve a relative archive path against the backup directory first."""
        path = Path(path)
        if path.is_absolute():
            return path
        candidate = self.backup_dir / path
        if candidate.exists() or not path.exists():
            return candidate
        return path

    def _unique_backup_path(self, backup_id: str) -> Path:
        path = self.backup_dir / f"{backup_id}{ARCHIVE_SUFFIX}"
        counter = 1
        while path.exists():
            path = self.backup_dir / f"{backup_id}_{counter}{ARCHIVE_SUFFIX}"
            counter += 1
        return path

    def _check_space(self) -> None:
        needed = directory_size(self.models_dir) * 2
        available = free_space(self.backup_dir)
        if available < needed:
            message = (
                f"Low disk space for backup: available {format_bytes(available)}, "
                f"need ~{format_bytes(needed)}"
            )
            logger.warning(message)
            warnings.warn(message, InsufficientSpaceWarning, stacklevel=3)

    async def _snapshot_models(self) -> List[str]:
        if self.registry is None:
            return [SERVICE_UNAVAILABLE]
        try:
            return await self.registry.names()
        except ServiceUnavailableError as e:
            logger.warning(f"Model service unavailable, proceeding with file-based backup: {e}")
            return [SERVICE_UNAVAILABLE]

    async def _service_version(self) -> str:
        if self.registry is None:
            return "unknown"
        return await self.registry.client.version()

    async def create_backup(self, name: Optional[str] = None) -> Backup:
        """Create a compressed backup of the model directory.

        Low free space only produces a warning. A failed self-verification is
        logged, and the archive is kept.

        Args:
            name: Optional name embedded in the backup ID

        Returns:
            Backup describing the new archive

        Raises:
            ArchiveError: The model directory is missing or the archive could
                not be written
        """
        from .. import __version__

        if not self.models_dir.is_dir():
            raise ArchiveError(f"Models directory not found: {self.models_dir}")

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = generate_timestamp()
        archive_path = self._unique_backup_path(generate_backup_id(name, timestamp))
        backup_id = backup_id_from_path(archive_path)
        logger.info(f"Starting backup: {backup_id}")

        self._check_space()

        metadata = BackupMetadata(
            backup_date=datetime.now(timezone.utc),
            backup_name=name or "",
            models_directory=str(self.models_dir),
            models_list=await self._snapshot_models(),
            hostname=hostname(),
            ollama_version=await self._service_version(),
            tool_version=__version__,
        )

        start = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="backup_meta_") as tmp:
            metadata_path = Path(tmp) / f"{METADATA_PREFIX}{timestamp}.json"
            save_metadata(metadata.model_dump(mode="json"), metadata_path)
            try:
                size = await create_archive(
                    archive_path,
                    models_dir=self.models_dir,
                    metadata_path=metadata_path,
                    compression_level=self.config.compression_level,
                )
            except (OSError, tarfile.TarError) as e:
                logger.error(f"Backup creation failed: {archive_path.name}: {e}")
                raise ArchiveError(f"Backup creation failed: {e}") from e

        duration = time.monotonic() - start
        logger.info(f"Backup created - {archive_path.name} ({format_bytes(size)}) in {duration:.1f}s")

        report = await asyncio.to_thread(self.verify_backup, archive_path, True)
        if report.valid:
            logger.info("Backup verification passed")
        else:
            logger.warning(f"Backup verification failed, but file was created: {report.reason}")

        self.clean_backups()

        return Backup(
            backup_id=backup_id,
            path=archive_path,
            size_bytes=size,
            created_at=datetime.fromtimestamp(archive_path.stat().st_mtime, tz=timezone.utc),
            metadata=metadata,
            verified=report.valid,
        )

    def verify_backup(self, path: Union[str, Path], silent: bool = False) -> VerificationReport:
        """Check an archive before trusting it.

        Hard checks: the file exists, is at least ``min_archive_size`` bytes
        and lists as a gzip tar. Advisory checks: a models directory entry
        and a metadata entry are present.
        """
        path = self.resolve_path(path)
        checks: List[CheckResult] = []

        def fail(name: str, reason: str) -> VerificationReport:
            checks.append(CheckResult(name=name, passed=False, detail=reason))
            if not silent:
                logger.error(f"Verification failed for {path.name}: {reason}")
            return VerificationReport(path=path, valid=False, reason=reason, checks=checks)

        if not path.is_file():
            return fail("exists", f"Backup file not found: {path}")
        checks.append(CheckResult(name="exists", passed=True))

        size = path.stat().st_size
        if size < self.config.min_archive_size:
            return fail("size", f"Backup file too small ({size} bytes)")
        checks.append(CheckResult(name="size", passed=True, detail=f"{size} bytes"))

        try:
            names = list_members(path)
        except _ARCHIVE_READ_ERRORS as e:
            return fail("integrity", f"Archive integrity check failed: {e}")
        checks.append(CheckResult(name="integrity", passed=True, detail=f"{len(names)} entries"))

        models_root = self.models_dir.name
        has_models = any(n.rstrip("/") == models_root or n.startswith(f"{models_root}/") for n in names)
        checks.append(CheckResult(
            name="models_directory",
            passed=has_models,
            advisory=True,
            detail="found" if has_models else "not found",
        ))
        has_metadata = any(Path(n).name.startswith(METADATA_PREFIX) for n in names)
        checks.append(CheckResult(
            name="metadata",
            passed=has_metadata,
            advisory=True,
            detail="found" if has_metadata else "not found",
        ))

        if not silent:
            for check in checks:
                level = "OK" if check.passed else "WARNING"
                logger.info(f"{path.name}: {check.name}: {level} {check.detail}".rstrip())
            logger.info(f"Backup verification completed: {path.name} ({format_bytes(size)})")

        return VerificationReport(path=path, valid=True, checks=checks)

    def _to_backup(self, path: Path, include_metadata: bool = False) -> Backup:
        stat = path.stat()
        metadata = None
        if include_metadata:
            raw = read_archive_metadata(path)
            if raw is not None:
                try:
                    metadata = BackupMetadata(**raw)
                except ValueError as e:
                    logger.warning(f"Invalid metadata in {path.name}: {e}")
        return Backup(
            backup_id=backup_id_from_path(path),
            path=path,
            size_bytes=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            metadata=metadata,
        )

    def _archive_paths(self) -> List[Path]:
        if not self.backup_dir.is_dir():
            return []
        paths = [p for p in self.backup_dir.glob(f"*{ARCHIVE_SUFFIX}") if p.is_file()]
        return sorted(paths, key=lambda p: (p.stat().st_mtime, p.name))

    def list_backups(self, include_metadata: bool = False) -> List[Backup]:
        """List backup archives, oldest first."""
        return [self._to_backup(p, include_metadata) for p in self._archive_paths()]

    def get_backup_path(self, backup_id: str) -> Optional[Path]:
        name = backup_id if backup_id.endswith(ARCHIVE_SUFFIX) else f"{backup_id}{ARCHIVE_SUFFIX}"
        path = self.backup_dir / Path(name).name
        return path if path.is_file() else None

    def delete_backup(self, backup_id: str) -> bool:
        """Delete backup archive.

        Returns:
            True if deleted, False if not found
        """
        path = self.get_backup_path(backup_id)
        if path is None:
            return False
        path.unlink()
        logger.info(f"Deleted backup: {path.name}")
        return True

    def clean_backups(self) -> int:
        """Delete all but the ``max_backups`` most recent archives.

        Returns:
            Number of archives removed
        """
        paths = self._archive_paths()
        excess = len(paths) - self.config.max_backups
        if excess <= 0:
            return 0

        logger.info(f"Cleaning old backups (keeping last {self.config.max_backups})")
        removed = 0
        for path in paths[:excess]:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
            logger.info(f"Cleaned old backup: {path.name}")
        return removed

    async def _service_has_models(self) -> bool:
        if self.registry is None:
            return False
        return await self.registry.count() > 0

    def _stage_current(self) -> Optional[Path]:
        """Best-effort tarball of the live directory before it is replaced."""
        if not self.models_dir.is_dir():
            return None
        staged = self.staging_dir / f"current_models_{generate_timestamp()}{ARCHIVE_SUFFIX}"
        try:
            self.staging_dir.mkdir(parents=True, exist_ok=True)
            with tarfile.open(staged, "w:gz", compresslevel=self.config.compression_level) as tar:
                tar.add(self.models_dir, arcname=self.models_dir.name)
        except (OSError, tarfile.TarError) as e:
            logger.warning(f"Could not stage current models before restore: {e}")
            staged.unlink(missing_ok=True)
            return None
        logger.info(f"Current models backed up to: {staged}")
        return staged

    async def restore_backup(
        self,
        path: Union[str, Path],
        force: bool = False,
        confirm: Optional[ConfirmCallback] = None,
    ) -> RestoreResult:
        """Replace the model directory with the contents of an archive.

        The live directory is only touched after the archive has been fully
        extracted to a scratch directory next to it.

        Args:
            path: Archive path, relative paths are looked up in the backup dir
            force: Skip the confirmation required while the service has models
            confirm: Called with a prompt when confirmation is required;
                anything but True aborts

        Returns:
            RestoreResult with outcome restored, aborted or failed
        """
        archive = self.resolve_path(path)
        logger.info(f"Starting restore from: {archive}")

        if not archive.is_file():
            logger.error(f"Backup file not found: {archive}")
            return RestoreResult(
                outcome=RestoreOutcome.FAILED,
                message=f"Backup file not found: {archive}",
                backup_path=archive,
            )

        report = await asyncio.to_thread(self.verify_backup, archive, True)
        if not report.valid:
            logger.error(f"Backup verification failed, aborting restore: {report.reason}")
            return RestoreResult(
                outcome=RestoreOutcome.ABORTED,
                message=f"Backup verification failed: {report.reason}",
                backup_path=archive,
            )

        if not force and await self._service_has_models():
            prompt = (
                "Ollama is currently running with models loaded; restore may fail "
                "if models are in use. Continue?"
            )
            if confirm is None or confirm(prompt) is not True:
                logger.info("Restore cancelled")
                return RestoreResult(
                    outcome=RestoreOutcome.ABORTED,
                    message="Restore cancelled: confirmation required while models are loaded",
                    backup_path=archive,
                )

        staged = await asyncio.to_thread(self._stage_current)

        self.models_dir.parent.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=".restore_", dir=self.models_dir.parent))
        try:
            try:
                await extract_archive(archive, scratch)
            except _EXTRACT_ERRORS as e:
                logger.error(f"Failed to extract backup: {e}")
                return RestoreResult(
                    outcome=RestoreOutcome.FAILED,
                    message=f"Failed to extract backup: {e}",
                    backup_path=archive,
                    staged_path=staged,
                )

            extracted = scratch / self.models_dir.name
            if not extracted.is_dir():
                logger.error(f"Archive has no {self.models_dir.name}/ directory")
                return RestoreResult(
                    outcome=RestoreOutcome.FAILED,
                    message=f"Archive has no {self.models_dir.name}/ directory",
                    backup_path=archive,
                    staged_path=staged,
                )

            metadata = None
            metadata_file = find_metadata_file(scratch)
            if metadata_file is not None:
                try:
                    metadata = BackupMetadata(**load_metadata(metadata_file))
                except ValueError as e:
                    logger.warning(f"Ignoring unreadable backup metadata: {e}")

            try:
                if self.models_dir.exists():
                    logger.info("Removing current models directory")
                    shutil.rmtree(self.models_dir)
                extracted.rename(self.models_dir)
            except OSError as e:
                logger.error(f"Failed to install restored models: {e}")
                return RestoreResult(
                    outcome=RestoreOutcome.FAILED,
                    message=f"Failed to install restored models: {e}",
                    backup_path=archive,
                    staged_path=staged,
                )
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        if metadata is not None:
            logger.info(f"Backup information: date {metadata.backup_date}, models {', '.join(metadata.models_list)}")
        logger.info(f"Models restored from {archive}")
        return RestoreResult(
            outcome=RestoreOutcome.RESTORED,
            message="Models restored; restart the service to load them",
            backup_path=archive,
            staged_path=staged,
            metadata=metadata,
        )

    async def status(self) -> StatusReport:
        backups = self.list_backups()
        reachable = False
        model_count = 0
        if self.registry is not None:
            reachable = await self.registry.client.ping()
            if reachable:
                model_count = await self.registry.count()

        try:
            available = free_space(self.backup_dir)
        except OSError:
            available = None

        return StatusReport(
            backup_dir=self.backup_dir,
            backup_dir_exists=self.backup_dir.is_dir(),
            backup_count=len(backups),
            backup_total_size=directory_size(self.backup_dir),
            models_dir=self.models_dir,
            models_dir_size=directory_size(self.models_dir) if self.models_dir.is_dir() else None,
            available_space=available,
            service_reachable=reachable,
            model_count=model_count,
            latest_backup=backups[-1] if backups else None,
        )
