"""ollama-models: day-to-day model management."""

import argparse
import sys
from typing import List, Optional

from .._utils import format_bytes
from ..exceptions import UserAbortedError
from ..health import HealthChecker
from ..manager import ModelManager
from .common import EXIT_FAILURE, EXIT_OK, add_common_arguments, confirm, load_config, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-models",
        description="Model manager for the Ollama service",
    )
    add_common_arguments(parser)
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", aliases=["ls"], help="List all available models")
    commands.add_parser("status", aliases=["stat"], help="Show detailed model status")

    install = commands.add_parser("install", aliases=["add"], help="Install a specific model")
    install.add_argument("name")

    remove = commands.add_parser("remove", aliases=["rm", "delete"], help="Remove a specific model")
    remove.add_argument("name")
    remove.add_argument("--force", action="store_true", help="Do not ask for confirmation")

    commands.add_parser("optimize", aliases=["opt"], help="Clear caches and check model integrity")
    commands.add_parser("cleanup", aliases=["clean"], help="Clean temporary files, old logs and old backups")
    commands.add_parser("backup", help="Backup all models")

    update = commands.add_parser("update", aliases=["upgrade"], help="Re-pull a model")
    update.add_argument("name")
    update.add_argument("--install", action="store_true", help="Install the model if it is missing")

    commands.add_parser("health", aliases=["check"], help="Run health check")
    return parser


_ALIASES = {
    "ls": "list",
    "stat": "status",
    "add": "install",
    "rm": "remove",
    "delete": "remove",
    "opt": "optimize",
    "clean": "cleanup",
    "upgrade": "update",
    "check": "health",
}


async def _main(args: argparse.Namespace) -> int:
    config = load_config(args, "model-manager.log")
    manager = ModelManager(config)
    command = _ALIASES.get(args.command, args.command)

    if command in ("list", "status"):
        status = await manager.status()
        if not status.api_available:
            print("Ollama API: unavailable")
            return EXIT_FAILURE
        if command == "status":
            print("Ollama API: available")
            print(f"Total models: {status.model_count}")
            print(f"Storage used: {format_bytes(status.storage_used)}")
            if status.memory_usage is not None:
                print(f"Memory usage: {status.memory_usage:.1f}%")
        print("Available models:")
        for model in status.models:
            modified = f"{model.modified_at:%Y-%m-%d %H:%M}" if model.modified_at else "unknown"
            print(f"  {model.name}  {format_bytes(model.size)}  modified {modified}")
        return EXIT_OK

    if command == "install":
        result = await manager.install(args.name)
        print(f"{'Installed' if result.succeeded else 'Failed to install'} {args.name}")
        return EXIT_OK if result.succeeded else EXIT_FAILURE

    if command == "remove":
        try:
            removed = await manager.remove(args.name, force=args.force, confirm=confirm)
        except UserAbortedError:
            print("Operation cancelled")
            return EXIT_OK
        print(f"{'Removed' if removed else 'Could not remove'} {args.name}")
        return EXIT_OK if removed else EXIT_FAILURE

    if command == "optimize":
        corrupted = await manager.optimize()
        for name in corrupted:
            print(f"  possibly corrupted: {name}")
        print("Optimization complete")
        return EXIT_OK

    if command == "cleanup":
        removed = await manager.cleanup()
        print(
            f"Cleanup complete: {removed['tmp_entries']} temporary entries, "
            f"{removed['log_files']} log files, {removed['backups']} backups removed"
        )
        return EXIT_OK

    if command == "backup":
        backup = await manager.archive_manager.create_backup()
        print(f"Backup created: {backup.path} ({format_bytes(backup.size_bytes)})")
        return EXIT_OK

    if command == "update":
        result = await manager.update(args.name, install_if_missing=args.install)
        if result.attempts == 0:
            print(f"Model {args.name} not found locally (use --install to install it)")
        else:
            print(f"{'Updated' if result.succeeded else 'Failed to update'} {args.name}")
        return EXIT_OK if result.succeeded else EXIT_FAILURE

    if command == "health":
        report = await HealthChecker(manager.client, manager.registry, config).run()
        print(f"Health status: {report.status}")
        return EXIT_OK if report.healthy else EXIT_FAILURE

    return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(lambda: _main(args))


if __name__ == "__main__":
    sys.exit(main())
