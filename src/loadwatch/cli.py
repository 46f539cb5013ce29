"""Command-line entry point for loadwatch."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Callable, Sequence
from typing import Any

from .client import BackendClient
from .codec import decode_active_actions
from .config import AppConfig, load_app_config
from .contracts.error import BadInputError, Exit, guard_cli
from .dashboard import Dashboard
from .logging_setup import configure_logging
from .models import METRIC_UNITS, Action, ActionType, MetricDimension, MetricSample
from .state import DashboardState

logger = logging.getLogger("loadwatch.cli")

OUTPUT_JSON: bool = False

_PARAM_FLAGS: dict[str, tuple[str, type]] = {
    "target_percent": ("--target-percent", int),
    "duration_seconds": ("--duration", int),
    "size_mb": ("--size-mb", int),
    "operations": ("--operations", int),
    "file_size_kb": ("--file-size-kb", int),
    "requests_per_sec": ("--requests-per-sec", int),
    "target_url": ("--target-url", str),
}


def emit_success(
    command: str, *, text: str | None = None, data: dict[str, Any] | None = None
) -> None:
    if OUTPUT_JSON:
        payload: dict[str, Any] = {"ok": True, "command": command}
        if data:
            payload.update(data)
        if text is not None and "result" not in payload:
            payload["result"] = text
        print(json.dumps(payload, ensure_ascii=False, default=str))
    else:
        if text is not None:
            print(text)


def format_sample_line(sample: MetricSample | None, active: int) -> str:
    if sample is None:
        return f"(no sample yet)  active {active}"
    parts = [sample.timestamp.astimezone().strftime("%H:%M:%S")]
    for dimension in MetricDimension:
        value = sample.value(dimension)
        parts.append(f"{dimension.value} {value:.1f}{METRIC_UNITS[dimension]}")
    parts.append(f"active {active}")
    return "  ".join(parts)


def format_action_line(action: Action) -> str:
    started = action.started_at.astimezone().strftime("%H:%M:%S") if action.started_at else "-"
    params = ", ".join(f"{key}={value}" for key, value in sorted(action.parameters.items()))
    line = f"{action.id}  {action.type}  {action.status}  started {started}"
    return f"{line}  [{params}]" if params else line


def _action_data(action: Action) -> dict[str, Any]:
    return action.model_dump(mode="json")


def _collect_params(args: argparse.Namespace, cfg: AppConfig) -> dict[str, Any]:
    params = cfg.actions.for_type(args.action_type)
    for field_name in _PARAM_FLAGS:
        value = getattr(args, field_name, None)
        if value is not None:
            params[field_name] = value
    return params


def _build_client(cfg: AppConfig) -> BackendClient:
    return BackendClient(cfg.backend.base_url, cfg.backend.timeout_seconds)


async def _watch(dashboard: Dashboard, cycles: int | None) -> None:
    done = asyncio.Event()
    attempts = 0

    def _tick() -> None:
        nonlocal attempts
        attempts += 1
        if cycles is not None and attempts >= cycles:
            done.set()

    def _on_update(state: DashboardState) -> None:
        sample = state.current_sample
        active = state.registry.count()
        data = {"sample": sample.model_dump(mode="json") if sample else None, "active": active}
        emit_success("watch", text=format_sample_line(sample, active), data=data)
        _tick()

    def _on_error(exc: Exception) -> None:
        print(f"poll failed: {exc}", file=sys.stderr)
        _tick()

    dashboard.poller.on_update = _on_update
    dashboard.poller.on_error = _on_error
    dashboard.mount()
    try:
        await done.wait()
    finally:
        await dashboard.unmount()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadwatch",
        description="Watch a load-testing backend's metrics and start or stop load actions.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to TOML config file (env LOADWATCH_CONFIG is used when omitted)",
    )
    parser.add_argument("--base-url", default=None, help="Backend API base URL override")
    parser.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional log file path (rotates at 5MB, keeps 5 backups)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: %(default)s)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Emit machine-readable success output to stdout"
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    watch = sub.add_parser("watch", help="Poll the backend and print one line per cycle")
    watch.add_argument(
        "--cycles", type=int, default=None, help="Stop after N poll cycles (default: forever)"
    )

    sub.add_parser("tui", help="Launch the interactive terminal dashboard")

    start = sub.add_parser("start", help="Start a load action")
    start.add_argument("action_type", choices=[kind.value for kind in ActionType])
    for field_name, (flag, caster) in _PARAM_FLAGS.items():
        start.add_argument(flag, dest=field_name, type=caster, default=None)

    stop = sub.add_parser("stop", help="Stop one action by id")
    stop.add_argument("action_id")

    sub.add_parser("stop-all", help="Stop every running action")
    sub.add_parser("actions", help="List the backend's active actions")
    sub.add_parser("health", help="Check backend health")
    return parser


def _handlers(cfg: AppConfig) -> dict[str, Callable[[argparse.Namespace], int]]:
    @guard_cli
    def watch(args: argparse.Namespace) -> int:
        if args.cycles is not None and args.cycles < 1:
            raise BadInputError("--cycles must be >= 1")
        try:
            asyncio.run(_watch(Dashboard(cfg), args.cycles))
        except KeyboardInterrupt:
            logger.info("Watch interrupted")
        return int(Exit.OK)

    @guard_cli
    def tui(_args: argparse.Namespace) -> int:
        from .tui.app import run_tui

        run_tui(cfg)
        return int(Exit.OK)

    @guard_cli
    def start(args: argparse.Namespace) -> int:
        params = _collect_params(args, cfg)
        action = asyncio.run(Dashboard(cfg).start_action(args.action_type, params))
        if action is None:
            return int(Exit.OK)
        emit_success(
            "start",
            text=f"Started {action.type} as {action.id} ({action.status})",
            data={"action": _action_data(action)},
        )
        return int(Exit.OK)

    @guard_cli
    def stop(args: argparse.Namespace) -> int:
        asyncio.run(Dashboard(cfg).stop_action(args.action_id))
        emit_success("stop", text=f"Stopped {args.action_id}", data={"id": args.action_id})
        return int(Exit.OK)

    @guard_cli
    def stop_all(_args: argparse.Namespace) -> int:
        asyncio.run(Dashboard(cfg).stop_all())
        emit_success("stop-all", text="Stop-all accepted")
        return int(Exit.OK)

    @guard_cli
    def actions(_args: argparse.Namespace) -> int:
        listed = decode_active_actions(_build_client(cfg).fetch_active_actions())
        lines = [format_action_line(action) for action in listed] or ["No active actions."]
        emit_success(
            "actions",
            text="\n".join(lines),
            data={"count": len(listed), "actions": [_action_data(a) for a in listed]},
        )
        return int(Exit.OK)

    @guard_cli
    def health(_args: argparse.Namespace) -> int:
        payload = _build_client(cfg).health()
        status = payload.get("status", "unknown") if isinstance(payload, dict) else "unknown"
        emit_success(
            "health",
            text=f"{cfg.backend.base_url}: {status}",
            data={"health": payload, "base_url": cfg.backend.base_url},
        )
        return int(Exit.OK)

    return {
        "watch": watch,
        "tui": tui,
        "start": start,
        "stop": stop,
        "stop-all": stop_all,
        "actions": actions,
        "health": health,
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    global OUTPUT_JSON
    OUTPUT_JSON = bool(args.json)

    configure_logging(args.log_json, args.log_file, level=args.log_level)

    @guard_cli
    def _load() -> AppConfig:
        cfg_path = args.config or os.getenv("LOADWATCH_CONFIG")
        cfg = load_app_config(cfg_path)
        if args.base_url:
            cfg.backend.base_url = args.base_url
            cfg.backend.validate()
        if cfg_path:
            logger.info("Loaded config from %s", cfg_path)
        return cfg

    cfg = _load()
    return _handlers(cfg)[args.cmd](args)


def console_main() -> None:
    """Entry point for console_scripts."""

    raise SystemExit(main(sys.argv[1:]))


__all__ = ["build_parser", "main", "console_main", "emit_success", "format_sample_line"]
