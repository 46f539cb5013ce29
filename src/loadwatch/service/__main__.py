"""Command-line entry point for the simulated backend."""

from __future__ import annotations

import argparse
import importlib

from loadwatch.logging_setup import configure_logging

from .api import create_app
from .engine import MAX_CONCURRENT, ActionEngine

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulated loadwatch backend.")
    parser.add_argument(
        "--host", default=DEFAULT_HOST, help="Interface to bind (default: %(default)s)."
    )
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help="Port to bind (default: %(default)s)."
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=MAX_CONCURRENT,
        help="Maximum simultaneously running actions (default: %(default)s).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the synthetic metric jitter.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Uvicorn log level (default: %(default)s).",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit loadwatch logs as JSON.")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    engine = ActionEngine(max_concurrent=args.max_concurrent, seed=args.seed)
    app = create_app(engine)

    log_level = args.log_level.lower()
    configure_logging(args.log_json, level=log_level.upper())

    uvicorn = importlib.import_module("uvicorn")
    uvicorn.run(app, host=args.host, port=args.port, log_level=log_level)


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    main()
