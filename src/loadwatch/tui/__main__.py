"""CLI entry point for the loadwatch Textual dashboard."""

from __future__ import annotations

import argparse
from collections.abc import Sequence

from loadwatch.config import load_app_config

from .app import run_tui


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Interactive terminal dashboard for a load-testing backend.",
    )
    parser.add_argument("--config", default=None, help="Path to TOML config file")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Backend API base URL (default: config value or http://localhost:8080/api)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: config value or 1.0)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    cfg = load_app_config(args.config)
    if args.base_url:
        cfg.backend.base_url = args.base_url
    if args.poll_interval is not None:
        cfg.polling.interval_seconds = args.poll_interval
    cfg.validate()
    run_tui(cfg)


if __name__ == "__main__":
    main()
