import logging
import os
import shutil
import socket
import sys
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("ollama-lifecycle")

LOG_FORMAT = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file: Optional[Union[str, Path]] = None, level: int = logging.INFO) -> logging.Logger:
    """Attach console and persistent file handlers to the package logger.

    The package logger does not propagate, so the output is independent of
    whatever the hosting process does with the root logger. Setting
    DISABLE_APP_LOGGING=true falls back to root-managed logging.
    """
    logger.setLevel(level)
    logger.handlers.clear()

    if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
        logger.propagate = True
        return logger

    logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            # Read-only or missing log volume: keep console logging only
            logger.warning(f"Cannot open log file {log_path}: {e}")
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def directory_size(path: Path) -> int:
    """Total size in bytes of all regular files under path."""
    if not path.exists():
        return 0
    if path.is_file():
        return path.stat().st_size
    total = 0
    for file_path in path.rglob("*"):
        if file_path.is_file() and not file_path.is_symlink():
            total += file_path.stat().st_size
    return total


def free_space(path: Path) -> int:
    """Free bytes on the filesystem holding path (or its nearest existing parent)."""
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return shutil.disk_usage(probe).free


def format_bytes(size: Optional[int]) -> str:
    if size is None:
        return "unknown"
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024:
            return f"{value:.1f} {unit}"
    return f"{value / 1024:.1f} TB"


def hostname() -> str:
    return socket.gethostname()


def normalize_model_name(name: str) -> str:
    """Append the implicit ``latest`` tag, matching how the service lists models."""
    name = name.strip()
    if ":" not in name.rsplit("/", 1)[-1]:
        return f"{name}:latest"
    return name


def memory_usage_percent(meminfo: Path = Path("/proc/meminfo")) -> Optional[float]:
    """Used memory as a percentage of MemTotal, or None where /proc is unavailable."""
    try:
        values = {}
        with open(meminfo, "r", encoding="utf-8") as f:
            for line in f:
                key, _, rest = line.partition(":")
                values[key] = int(rest.split()[0])
        total = values["MemTotal"]
        available = values.get("MemAvailable", values.get("MemFree", 0))
    except (OSError, KeyError, ValueError, IndexError):
        return None
    if total <= 0:
        return None
    return round((total - available) / total * 100.0, 1)


def clear_directory(path: Path) -> int:
    """Delete everything inside path, keeping path itself. Returns entries removed."""
    if not path.is_dir():
        return 0
    removed = 0
    for entry in path.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            logger.warning(f"Could not remove {entry}: {e}")
            continue
        removed += 1
    return removed


def prune_files(directory: Path, pattern: str, keep: int) -> int:
    """Remove all but the ``keep`` newest files matching pattern."""
    if not directory.is_dir():
        return 0
    files = sorted(
        (p for p in directory.glob(pattern) if p.is_file()),
        key=lambda p: (p.stat().st_mtime, p.name),
        reverse=True,
    )
    removed = 0
    for path in files[keep:]:
        path.unlink(missing_ok=True)
        removed += 1
    return removed
