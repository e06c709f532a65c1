"""Tests for backup utilities."""

import io
import json
import tarfile
import pytest
from pathlib import Path

from ollama_lifecycle.exceptions import ArchiveCorruptError
from ollama_lifecycle.backup.utils import (
    backup_id_from_path,
    create_archive,
    extract_archive,
    find_metadata_file,
    generate_backup_id,
    is_safe_member,
    list_members,
    load_metadata,
    read_archive_metadata,
    sanitize_name,
    save_metadata,
)


def test_generate_backup_id():
    assert generate_backup_id(None, "20240101_120000") == "models_backup_20240101_120000"
    assert generate_backup_id("", "20240101_120000") == "models_backup_20240101_120000"
    assert generate_backup_id("pre-upgrade", "20240101_120000") == "models_pre-upgrade_20240101_120000"


def test_generate_backup_id_default_timestamp():
    backup_id = generate_backup_id()
    assert backup_id.startswith("models_backup_")
    assert len(backup_id) == len("models_backup_YYYYmmdd_HHMMSS")


def test_sanitize_name():
    assert sanitize_name("my backup/../x") == "my_backup_.._x"
    assert sanitize_name("  ") == ""
    assert sanitize_name(None) == ""


def test_backup_id_from_path():
    assert backup_id_from_path(Path("/b/models_backup_20240101_120000.tar.gz")) == "models_backup_20240101_120000"


def test_is_safe_member():
    assert is_safe_member("models/blobs/sha256-1")
    assert not is_safe_member("/etc/passwd")
    assert not is_safe_member("models/../../etc/passwd")


@pytest.mark.asyncio
async def test_create_and_extract_archive(temp_dir):
    models_dir = temp_dir / "models"
    (models_dir / "blobs").mkdir(parents=True)
    (models_dir / "blobs" / "sha256-1").write_bytes(b"weights")
    metadata_path = temp_dir / "backup_metadata_20240101_120000.json"
    save_metadata({"backup_name": "test"}, metadata_path)

    archive = temp_dir / "out.tar.gz"
    size = await create_archive(archive, models_dir=models_dir, metadata_path=metadata_path)

    assert size == archive.stat().st_size
    assert not (temp_dir / "out.tar.gz.partial").exists()
    names = list_members(archive)
    assert names[0] == "backup_metadata_20240101_120000.json"
    assert "models/blobs/sha256-1" in names
    assert read_archive_metadata(archive) == {"backup_name": "test"}

    target = temp_dir / "extracted"
    await extract_archive(archive, target)
    assert (target / "models" / "blobs" / "sha256-1").read_bytes() == b"weights"
    assert load_metadata(find_metadata_file(target)) == {"backup_name": "test"}


@pytest.mark.asyncio
async def test_extract_rejects_path_traversal(temp_dir):
    archive = temp_dir / "evil.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        data = b"owned"
        info = tarfile.TarInfo("../escape.txt")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))

    with pytest.raises(ArchiveCorruptError, match="escapes"):
        await extract_archive(archive, temp_dir / "target")
    assert not (temp_dir / "escape.txt").exists()


def test_read_archive_metadata_missing(temp_dir):
    archive = temp_dir / "plain.tar.gz"
    payload = temp_dir / "file.txt"
    payload.write_text("x")
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(payload, arcname="file.txt")

    assert read_archive_metadata(archive) is None


def test_read_archive_metadata_corrupt(temp_dir):
    archive = temp_dir / "broken.tar.gz"
    archive.write_bytes(b"not a tarball")

    assert read_archive_metadata(archive) is None


def test_save_and_load_metadata(temp_dir):
    path = temp_dir / "meta.json"
    save_metadata({"models_list": ["phi3:3.8b"]}, path)
    assert json.loads(path.read_text()) == {"models_list": ["phi3:3.8b"]}
    assert load_metadata(path) == {"models_list": ["phi3:3.8b"]}
