"""Shared plumbing for the command line tools."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from dotenv import load_dotenv

from .._utils import logger, setup_logging
from ..config import LifecycleConfig
from ..exceptions import LifecycleError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env",
        help="Environment file to load before reading configuration",
        default=None
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output"
    )


def load_config(args: argparse.Namespace, log_name: str) -> LifecycleConfig:
    """Load the env file, build the configuration and start file logging."""
    if args.env:
        load_dotenv(args.env, override=True)
    try:
        config = LifecycleConfig.from_env()
    except ValueError as e:
        raise LifecycleError(f"Invalid configuration: {e}") from e
    setup_logging(
        Path(config.storage.log_dir) / log_name,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    return config


def confirm(prompt: str) -> bool:
    """Ask on the terminal; anything but y/yes declines."""
    if not sys.stdin.isatty():
        return False
    try:
        answer = input(f"{prompt} (y/N) ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def run(main: Callable[[], Awaitable[Optional[int]]]) -> int:
    """Run an async command and map its outcome to an exit code."""
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except LifecycleError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    return EXIT_OK if code is None else code
