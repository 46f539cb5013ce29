"""Module entry-point shim for `python -m loadwatch`."""

from __future__ import annotations

from loadwatch.cli import console_main

if __name__ == "__main__":  # pragma: no cover - CLI entry point
    console_main()
