"""Decode raw backend payloads into typed samples, actions and receipts."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .contracts.error import DecodeError
from .history import to_points
from .models import Action, ActionReceipt, MetricSample

M = TypeVar("M", bound=BaseModel)


def _as_object(raw: Any, what: str) -> Mapping[str, Any]:
    if isinstance(raw, bytes | bytearray):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"{what} payload is not valid UTF-8") from exc
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"{what} payload is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, Mapping):
        raise DecodeError(f"{what} payload must be a JSON object; got {type(raw).__name__}")
    return raw


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def _validate(model: type[M], payload: Mapping[str, Any], what: str) -> M:
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        raise DecodeError(f"Malformed {what}: {_describe(exc)}") from exc


def decode_sample(raw: Any) -> MetricSample:
    """Parse a ``GET /api/metrics`` payload into a :class:`MetricSample`."""

    return _validate(MetricSample, _as_object(raw, "metrics"), "metrics sample")


def decode_active_actions(raw: Any) -> list[Action]:
    """Parse a ``GET /api/actions/active`` payload into a list of actions."""

    payload = _as_object(raw, "active actions")
    if "actions" not in payload:
        raise DecodeError("Malformed active actions: missing 'actions' field")
    entries = payload["actions"]
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise DecodeError(
            f"Malformed active actions: 'actions' must be a list; got {type(entries).__name__}"
        )
    actions: list[Action] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise DecodeError(f"Malformed active actions: entry {index} is not an object")
        actions.append(_validate(Action, entry, f"action entry {index}"))
    return actions


def decode_receipt(raw: Any) -> ActionReceipt:
    """Parse the descriptor returned after starting an action."""

    return _validate(ActionReceipt, _as_object(raw, "action receipt"), "action receipt")


__all__ = ["decode_sample", "decode_active_actions", "decode_receipt", "to_points"]
