"""ollama-backup: backup and restore the model storage directory."""

import argparse
import sys
from typing import List, Optional

from .._utils import format_bytes
from ..backup import ArchiveManager, RestoreOutcome
from ..client import OllamaClient
from ..registry import ModelRegistry
from .common import EXIT_FAILURE, EXIT_OK, add_common_arguments, confirm, load_config, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-backup",
        description="Backup and restore Ollama models",
    )
    add_common_arguments(parser)
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("backup", help="Create a backup of all models")
    create.add_argument("name", nargs="?", default=None, help="Optional name included in the backup id")

    restore = commands.add_parser("restore", help="Restore models from a backup file")
    restore.add_argument("file", help="Archive path, or a file name inside the backup directory")
    restore.add_argument("--force", action="store_true", help="Do not ask for confirmation")

    commands.add_parser("list", help="List available backups")
    commands.add_parser("status", help="Show backup system status")

    verify = commands.add_parser("verify", help="Verify backup integrity")
    verify.add_argument("file")

    commands.add_parser("clean", help="Remove old backups beyond the retention limit")
    return parser


async def _main(args: argparse.Namespace) -> int:
    config = load_config(args, "backup.log")
    registry = ModelRegistry(OllamaClient(config.service))
    manager = ArchiveManager(registry, config.storage)

    if args.command == "backup":
        backup = await manager.create_backup(args.name)
        print(f"Backup created: {backup.path} ({format_bytes(backup.size_bytes)})")
        return EXIT_OK

    if args.command == "restore":
        result = await manager.restore_backup(args.file, force=args.force, confirm=confirm)
        print(result.message)
        if result.staged_path:
            print(f"Previous models saved to: {result.staged_path}")
        return EXIT_OK if result.outcome == RestoreOutcome.RESTORED else EXIT_FAILURE

    if args.command == "list":
        backups = manager.list_backups(include_metadata=True)
        if not backups:
            print(f"No backups found in {manager.backup_dir}")
            return EXIT_OK
        print(f"Available backups in {manager.backup_dir}:")
        for backup in reversed(backups):
            models = ""
            if backup.metadata is not None:
                models = f" [{', '.join(backup.metadata.models_list)}]"
            print(
                f"  {backup.path.name}  {format_bytes(backup.size_bytes):>10}  "
                f"{backup.created_at:%Y-%m-%d %H:%M:%S}{models}"
            )
        return EXIT_OK

    if args.command == "status":
        report = await manager.status()
        print("Backup System Status")
        print(f"  Backup directory: {report.backup_dir} ({'exists' if report.backup_dir_exists else 'missing'})")
        print(f"  Total backups: {report.backup_count} ({format_bytes(report.backup_total_size)})")
        if report.latest_backup is not None:
            print(f"  Latest backup: {report.latest_backup.path.name}")
        print(f"  Models directory: {report.models_dir} ({format_bytes(report.models_dir_size)})")
        print(f"  Available space: {format_bytes(report.available_space)}")
        service = f"running, {report.model_count} model(s)" if report.service_reachable else "not running"
        print(f"  Ollama service: {service}")
        return EXIT_OK

    if args.command == "verify":
        report = manager.verify_backup(args.file)
        print(f"{report.path}: {'valid' if report.valid else 'INVALID'}")
        if report.reason:
            print(f"  {report.reason}")
        for check in report.warnings:
            print(f"  warning: {check.detail or check.name}")
        return EXIT_OK if report.valid else EXIT_FAILURE

    if args.command == "clean":
        removed = manager.clean_backups()
        print(f"Removed {removed} old backup(s)")
        return EXIT_OK

    return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(lambda: _main(args))


if __name__ == "__main__":
    sys.exit(main())
