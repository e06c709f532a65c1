"""ollama-health: container health check, exit 0 when healthy."""

import argparse
import sys
from typing import List, Optional

from ..client import OllamaClient
from ..health import HealthChecker
from ..registry import ModelRegistry
from .common import EXIT_FAILURE, EXIT_OK, add_common_arguments, load_config, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-health",
        description="Check the Ollama service and its installed models",
    )
    add_common_arguments(parser)
    parser.add_argument(
        "--skip-inference",
        action="store_true",
        help="Do not run the generation smoke test"
    )
    return parser


async def _main(args: argparse.Namespace) -> int:
    config = load_config(args, "health.log")
    client = OllamaClient(config.service)
    checker = HealthChecker(client, ModelRegistry(client), config)
    report = await checker.run(include_inference=not args.skip_inference)
    return EXIT_OK if report.healthy else EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(lambda: _main(args))


if __name__ == "__main__":
    sys.exit(main())
