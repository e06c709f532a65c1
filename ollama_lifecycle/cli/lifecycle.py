"""ollama-lifecycle: start the service, install the model set, keep serving."""

import argparse
import sys
from typing import List, Optional

from ..orchestrator import LifecycleOrchestrator
from ..process import ServeProcess
from .common import EXIT_OK, add_common_arguments, load_config, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-lifecycle",
        description="Start Ollama and install the configured models",
    )
    add_common_arguments(parser)
    parser.add_argument(
        "--no-serve",
        action="store_true",
        help="Attach to an already running service instead of starting one"
    )
    parser.add_argument(
        "--models",
        default=None,
        help="Comma separated model set (overrides INSTALL_MODELS)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Exit after installation instead of supervising the service"
    )
    parser.add_argument(
        "--keep-partial",
        action="store_true",
        help="Do not remove interrupted downloads before starting"
    )
    return parser


def _models(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    return [m.strip() for m in raw.split(",") if m.strip()]


async def _main(args: argparse.Namespace) -> int:
    config = load_config(args, "startup.log")
    serve_process = None
    if not args.no_serve:
        serve_process = ServeProcess(config.service.ollama_bin)
    orchestrator = LifecycleOrchestrator(config, serve_process=serve_process)
    models = _models(args.models)

    if args.once:
        if not args.keep_partial:
            orchestrator.clean_partial_downloads()
        await orchestrator.run(models)
        await orchestrator.shutdown()
        return EXIT_OK
    return await orchestrator.serve_forever(models, clean_partial=not args.keep_partial)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(lambda: _main(args))


if __name__ == "__main__":
    sys.exit(main())
