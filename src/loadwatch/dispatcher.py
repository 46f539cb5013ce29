"""Start/stop commands with a per-trigger re-entrancy guard."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from .codec import decode_receipt
from .contracts.error import DecodeError, DispatchError, TransportError
from .models import Action, ActionRequest, ActionStatus, ActionType, build_request

logger = logging.getLogger(__name__)

STOP_ALL_KEY = "stop-all"

_IGNORED = object()


class CommandTarget(Protocol):
    def start_action(self, action_type: ActionType | str, body: Mapping[str, Any]) -> Any: ...

    def stop_action(self, action_id: str) -> Any: ...

    def stop_all(self) -> Any: ...


def start_key(action_type: ActionType | str) -> str:
    return f"start:{ActionType(action_type).value}"


def stop_key(action_id: str) -> str:
    return f"stop:{action_id}"


class CommandDispatcher:
    """Issue load-action commands to the backend.

    While a call for a given key is in flight (one key per action type for
    starts, per action id for stops, one shared key for stop-all) a repeated
    call returns ``None`` without sending anything. Failures raise
    :class:`DispatchError`. The dispatcher never touches dashboard state; the
    next poll cycle is the only source of truth for what is running.
    """

    def __init__(self, client: CommandTarget) -> None:
        self._client = client
        self._in_flight: set[str] = set()
        self._closed = False

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def is_starting(self, action_type: ActionType | str) -> bool:
        return start_key(action_type) in self._in_flight

    @property
    def stopping_all(self) -> bool:
        return STOP_ALL_KEY in self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        self._closed = False

    def close(self) -> None:
        self._closed = True

    async def start(
        self, action_type: ActionType | str, params: ActionRequest | Mapping[str, Any] | None
    ) -> Action | None:
        try:
            kind = ActionType(action_type)
        except ValueError as exc:
            raise DispatchError(f"Unknown action type: {action_type!r}") from exc
        try:
            request = build_request(kind, params)
        except (ValidationError, ValueError, TypeError) as exc:
            raise DispatchError(f"Invalid {kind.value} parameters: {exc}") from exc
        body = request.model_dump()

        def _call() -> Any:
            return self._client.start_action(kind, body)

        raw = await self._guarded(start_key(kind), f"start {kind.value}", _call)
        if raw is _IGNORED:
            return None
        try:
            receipt = decode_receipt(raw)
        except DecodeError as exc:
            raise DispatchError(
                f"start {kind.value} returned an unexpected response: {exc}"
            ) from exc
        logger.info(
            "Started %s action %s (%s)",
            kind.value,
            receipt.id,
            receipt.status,
            extra={"action_id": receipt.id, "action_type": kind.value},
        )
        return Action(
            id=receipt.id,
            type=kind,
            status=receipt.status or ActionStatus.STARTING,
            started_at=receipt.started_at or datetime.now(tz=UTC),
            parameters=body,
        )

    async def stop(self, action_id: str) -> bool | None:
        if not isinstance(action_id, str) or not action_id.strip():
            raise DispatchError("Action id must not be blank")
        action_id = action_id.strip()
        raw = await self._guarded(
            stop_key(action_id), f"stop {action_id}", lambda: self._client.stop_action(action_id)
        )
        if raw is _IGNORED:
            return None
        logger.info("Stopped action %s", action_id, extra={"action_id": action_id})
        return True

    async def stop_all(self) -> bool | None:
        raw = await self._guarded(STOP_ALL_KEY, "stop all", self._client.stop_all)
        if raw is _IGNORED:
            return None
        stopped = raw.get("stopped") if isinstance(raw, dict) else None
        logger.info("Stop-all accepted (stopped=%s)", stopped if stopped is not None else "?")
        return True

    async def _guarded(self, key: str, label: str, call: Callable[[], Any]) -> Any:
        if self._closed:
            raise DispatchError(f"Cannot {label}: dispatcher is closed")
        if key in self._in_flight:
            logger.debug("Ignoring repeated %s while the previous one is in flight", label)
            return _IGNORED
        self._in_flight.add(key)
        try:
            return await asyncio.to_thread(call)
        except TransportError as exc:
            logger.warning("Failed to %s: %s", label, exc)
            raise DispatchError(f"Failed to {label}: {exc}", status=exc.status) from exc
        except DecodeError as exc:
            logger.warning("Failed to %s: %s", label, exc)
            raise DispatchError(f"Failed to {label}: {exc}") from exc
        finally:
            self._in_flight.discard(key)


__all__ = ["CommandDispatcher", "CommandTarget", "STOP_ALL_KEY", "start_key", "stop_key"]
