"""Typed configuration loader for loadwatch."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .client import DEFAULT_BASE_URL, normalize_base_url
from .contracts.error import BadInputError
from .models import ActionType, build_request


@dataclass
class BackendSettings:
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 1.0

    def validate(self) -> None:
        try:
            self.base_url = normalize_base_url(self.base_url)
        except ValueError as exc:
            raise BadInputError(f"backend.base_url is invalid: {exc}") from exc
        if self.timeout_seconds <= 0:
            raise BadInputError("backend.timeout_seconds must be > 0")


@dataclass
class PollingPolicy:
    interval_seconds: float = 1.0
    history_capacity: int = 60

    def validate(self) -> None:
        if self.interval_seconds <= 0:
            raise BadInputError("polling.interval_seconds must be > 0")
        if isinstance(self.history_capacity, bool) or not isinstance(self.history_capacity, int):
            raise BadInputError("polling.history_capacity must be an integer")
        if self.history_capacity < 1:
            raise BadInputError("polling.history_capacity must be >= 1")


def _default_presets() -> dict[str, dict[str, Any]]:
    return {
        ActionType.CPU_STRESS.value: {"target_percent": 80, "duration_seconds": 10},
        ActionType.MEMORY_SURGE.value: {"size_mb": 500, "duration_seconds": 30},
        ActionType.DISK_STORM.value: {"operations": 1000, "file_size_kb": 10},
        ActionType.TRAFFIC_FLOOD.value: {
            "requests_per_sec": 100,
            "duration_seconds": 10,
            "target_url": "",
        },
    }


@dataclass
class ActionPresets:
    """Default parameters used by the one-key start triggers."""

    presets: dict[str, dict[str, Any]] = field(default_factory=_default_presets)

    def for_type(self, action_type: ActionType | str) -> dict[str, Any]:
        return dict(self.presets[ActionType(action_type).value])

    def validate(self) -> None:
        for name, params in self.presets.items():
            try:
                build_request(name, params)
            except (ValidationError, ValueError) as exc:
                raise BadInputError(f"actions.{name} defaults are invalid: {exc}") from exc


@dataclass
class AppConfig:
    backend: BackendSettings = field(default_factory=BackendSettings)
    polling: PollingPolicy = field(default_factory=PollingPolicy)
    actions: ActionPresets = field(default_factory=ActionPresets)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        backend_data = data.get("backend", {})
        if not isinstance(backend_data, dict):
            raise BadInputError("[backend] section must be a table")
        polling_data = data.get("polling", {})
        if not isinstance(polling_data, dict):
            raise BadInputError("[polling] section must be a table")
        actions_data = data.get("actions", {})
        if not isinstance(actions_data, dict):
            raise BadInputError("[actions] section must be a table")

        try:
            backend = BackendSettings(**backend_data)
            polling = PollingPolicy(**polling_data)
        except TypeError as exc:
            raise BadInputError(f"Unknown config key: {exc}") from exc

        presets = _default_presets()
        for name, overrides in actions_data.items():
            try:
                key = ActionType(name).value
            except ValueError as exc:
                raise BadInputError(f"[actions.{name}] is not a known action type") from exc
            if not isinstance(overrides, dict):
                raise BadInputError(f"[actions.{name}] section must be a table")
            presets[key].update(overrides)
        return cls(backend=backend, polling=polling, actions=ActionPresets(presets))

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        mapping: dict[str, tuple[object, str, Callable[[str], Any]]] = {
            "LOADWATCH_BASE_URL": (self.backend, "base_url", str),
            "LOADWATCH_TIMEOUT": (self.backend, "timeout_seconds", float),
            "LOADWATCH_POLL_INTERVAL": (self.polling, "interval_seconds", float),
            "LOADWATCH_HISTORY_CAPACITY": (self.polling, "history_capacity", int),
        }
        for key, (target, attr, caster) in mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(target, attr, value)

    def validate(self) -> None:
        self.backend.validate()
        self.polling.validate()
        self.actions.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": asdict(self.backend),
            "polling": asdict(self.polling),
            "actions": {name: dict(params) for name, params in self.actions.presets.items()},
        }


DEFAULT_CONFIG = AppConfig()


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)


__all__ = [
    "AppConfig",
    "BackendSettings",
    "PollingPolicy",
    "ActionPresets",
    "DEFAULT_CONFIG",
    "load_app_config",
]
