"""FastAPI application simulating the load-testing backend."""

from __future__ import annotations

import importlib
import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, cast

from pydantic import ValidationError
from starlette.requests import Request as StarletteRequest

if TYPE_CHECKING:
    from fastapi import FastAPI

from loadwatch.models import (
    Action,
    ActionReceipt,
    ActionRequest,
    ActionType,
    MetricSample,
    build_request,
)

from .engine import ActionEngine, ActionRecord, EngineBusyError

logger = logging.getLogger(__name__)

_START_MESSAGES = {
    ActionType.CPU_STRESS: "CPU stress action started",
    ActionType.MEMORY_SURGE: "Memory surge action started",
    ActionType.DISK_STORM: "Disk storm action started",
    ActionType.TRAFFIC_FLOOD: "Traffic flood action started",
}


class ActionEngineProtocol(Protocol):
    def start(self, request: ActionRequest) -> ActionRecord: ...

    def stop(self, action_id: str) -> Any: ...

    def stop_all(self) -> int: ...

    def active(self) -> list[Action]: ...

    def sample(self) -> MetricSample: ...


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error.get("loc", ())) or "body"
        parts.append(f"{loc}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def create_app(engine: ActionEngineProtocol | None = None) -> Any:
    """Create a FastAPI application serving the backend routes from ``engine``."""

    fastapi_mod = importlib.import_module("fastapi")
    responses_mod = importlib.import_module("fastapi.responses")

    fastapi_cls = fastapi_mod.FastAPI
    status = fastapi_mod.status
    json_response_cls = responses_mod.JSONResponse
    plain_response_cls = responses_mod.PlainTextResponse

    action_engine: ActionEngineProtocol = ActionEngine() if engine is None else engine
    app = cast("FastAPI", fastapi_cls(title="loadwatch simulated backend", version="0.1.0"))
    app.state.engine = action_engine

    def plain_error(message: str, code: int) -> Any:
        return plain_response_cls(message + "\n", status_code=code)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "healthy", "timestamp": datetime.now(tz=UTC).isoformat()}

    @app.get("/api/metrics")
    def metrics() -> dict[str, Any]:
        return action_engine.sample().model_dump(mode="json")

    @app.get("/api/actions/active")
    def active_actions() -> dict[str, Any]:
        listed = [action.model_dump(mode="json") for action in action_engine.active()]
        return {"actions": listed, "count": len(listed)}

    @app.post("/api/actions/stop-all")
    def stop_all() -> dict[str, Any]:
        stopped = action_engine.stop_all()
        return {"stopped": stopped, "message": f"Stopped {stopped} actions"}

    @app.post("/api/actions/{action_type}")
    async def start_action(action_type: str, request: StarletteRequest) -> Any:
        try:
            kind = ActionType(action_type)
        except ValueError:
            return plain_error("404 page not found", status.HTTP_404_NOT_FOUND)
        try:
            payload = json.loads(await request.body() or b"null")
        except (json.JSONDecodeError, UnicodeDecodeError):
            return plain_error("Invalid request body", status.HTTP_400_BAD_REQUEST)
        if not isinstance(payload, dict):
            return plain_error("Invalid request body", status.HTTP_400_BAD_REQUEST)
        try:
            body = build_request(kind, payload)
        except ValidationError as exc:
            return plain_error(_validation_message(exc), status.HTTP_400_BAD_REQUEST)
        try:
            record = action_engine.start(body)
        except EngineBusyError as exc:
            logger.warning("Rejected %s: %s", kind.value, exc)
            return plain_error(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        receipt = ActionReceipt(
            id=record.id,
            status=str(record.status),
            started_at=record.started_at,
            message=_START_MESSAGES[kind],
        )
        return json_response_cls(
            receipt.model_dump(mode="json"), status_code=status.HTTP_201_CREATED
        )

    @app.delete("/api/actions/{action_id}/stop")
    def stop_action(action_id: str) -> Any:
        try:
            action_engine.stop(action_id)
        except KeyError:
            return plain_error("action not found", status.HTTP_404_NOT_FOUND)
        return {"status": "stopped", "message": "Action stopped successfully"}

    return app


__all__ = ["create_app", "ActionEngineProtocol"]
