"""Utility functions for backup/restore operations."""

import asyncio
import json
import re
import tarfile
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from .._utils import logger
from ..exceptions import ArchiveCorruptError

ARCHIVE_SUFFIX = ".tar.gz"
METADATA_PREFIX = "backup_metadata_"


def generate_timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def sanitize_name(name: Optional[str]) -> str:
    """Reduce a user supplied backup name to filename-safe characters."""
    if not name:
        return ""
    return re.sub(r"[^A-Za-z0-9._-]+", "_", name.strip()).strip("._")


def generate_backup_id(name: Optional[str] = None, timestamp: Optional[str] = None) -> str:
    """Generate backup ID with timestamp.

    Returns:
        ``models_{name}_{YYYYmmdd_HHMMSS}`` or ``models_backup_{YYYYmmdd_HHMMSS}``
    """
    timestamp = timestamp or generate_timestamp()
    name = sanitize_name(name)
    return f"models_{name}_{timestamp}" if name else f"models_backup_{timestamp}"


def backup_id_from_path(path: Path) -> str:
    name = path.name
    return name[: -len(ARCHIVE_SUFFIX)] if name.endswith(ARCHIVE_SUFFIX) else path.stem


def _create_archive(
    output_path: Path,
    models_dir: Optional[Path],
    metadata_path: Optional[Path],
    compression_level: int,
) -> int:
    partial_path = output_path.with_name(output_path.name + ".partial")
    try:
        with tarfile.open(partial_path, "w:gz", compresslevel=compression_level) as tar:
            # Metadata goes first so it can be read without scanning the models
            if metadata_path is not None:
                tar.add(metadata_path, arcname=metadata_path.name)
            if models_dir is not None:
                tar.add(models_dir, arcname=models_dir.name)
        partial_path.replace(output_path)
    finally:
        if partial_path.exists():
            partial_path.unlink()
    return output_path.stat().st_size


async def create_archive(
    output_path: Path,
    models_dir: Optional[Path] = None,
    metadata_path: Optional[Path] = None,
    compression_level: int = 6,
) -> int:
    """Create tar.gz archive holding the metadata record and the models tree.

    The archive is written under a ``.partial`` name and renamed into place
    once complete.

    Args:
        output_path: Output .tar.gz file path
        models_dir: Directory to archive under its own basename
        metadata_path: Metadata JSON file added at the archive root
        compression_level: gzip level 0-9

    Returns:
        Size of created archive in bytes
    """
    logger.info(f"Creating archive: {output_path}")
    archive_size = await asyncio.to_thread(
        _create_archive, output_path, models_dir, metadata_path, compression_level
    )
    logger.info(f"Archive created: {archive_size:,} bytes")
    return archive_size


def list_members(archive_path: Path) -> List[str]:
    """Read every member name; raises tarfile.TarError or OSError when unreadable."""
    with tarfile.open(archive_path, "r:gz") as tar:
        return tar.getnames()


def is_safe_member(name: str) -> bool:
    path = PurePosixPath(name)
    return not path.is_absolute() and ".." not in path.parts


def _extract_archive(archive_path: Path, output_dir: Path) -> None:
    with tarfile.open(archive_path, "r:gz") as tar:
        members = tar.getmembers()
        unsafe = [m.name for m in members if not is_safe_member(m.name)]
        if unsafe:
            raise ArchiveCorruptError(f"Archive member escapes target directory: {unsafe[0]}")
        if hasattr(tarfile, "data_filter"):
            tar.extractall(output_dir, members=members, filter="data")
        else:
            tar.extractall(output_dir, members=members)


async def extract_archive(archive_path: Path, output_dir: Path) -> None:
    """Extract tar.gz archive to directory.

    Args:
        archive_path: Path to .tar.gz archive
        output_dir: Directory to extract to
    """
    logger.info(f"Extracting archive: {archive_path} to {output_dir}")
    output_dir.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(_extract_archive, archive_path, output_dir)
    logger.info("Archive extracted successfully")


def save_metadata(metadata: Dict[str, Any], output_path: Path) -> None:
    with open(output_path, "w") as f:
        json.dump(metadata, f, indent=2, default=str)
    logger.debug(f"Metadata saved: {output_path}")


def load_metadata(metadata_path: Path) -> Dict[str, Any]:
    with open(metadata_path, "r") as f:
        metadata = json.load(f)
    logger.debug(f"Metadata loaded: {metadata_path}")
    return metadata


def find_metadata_file(directory: Path) -> Optional[Path]:
    candidates = sorted(directory.glob(f"{METADATA_PREFIX}*.json"))
    return candidates[0] if candidates else None


def read_archive_metadata(archive_path: Path) -> Optional[Dict[str, Any]]:
    """Read the metadata record from the first archive member, if it is one.

    Archives from other tools may carry the record later in the stream; those
    are reported as having no metadata rather than decompressing everything.
    """
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            member = tar.next()
            if member is None or not PurePosixPath(member.name).name.startswith(METADATA_PREFIX):
                return None
            handle = tar.extractfile(member)
            if handle is None:
                return None
            with handle:
                return json.load(handle)
    except (OSError, tarfile.TarError, ValueError) as e:
        logger.warning(f"Failed to read metadata from {archive_path.name}: {e}")
        return None
