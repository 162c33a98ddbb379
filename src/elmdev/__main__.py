"""Command-line entry point for the Elm development server."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from . import app
from .build import BuildLaunchError
from .config import ConfigError, load_config
from .server import ServerError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="elmdev", description="Commands for my Elm project")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML file overriding the built-in paths and port",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    subparsers.add_parser("run", help="Compile, watch ./src and serve on the local port")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as exc:
        logging.error("%s", exc)
        raise SystemExit(2) from exc

    if args.command == "run":
        try:
            app.run(config)
        except (BuildLaunchError, ServerError) as exc:
            logging.error("%s", exc)
            raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
