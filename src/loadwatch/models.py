"""Pydantic models for the monitoring backend contract."""

from __future__ import annotations

import re
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# RFC 3339 timestamps from the backend may carry nanoseconds; datetime stops at micros.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _trim_fraction(value: Any) -> Any:
    if isinstance(value, str):
        return _EXCESS_FRACTION.sub(r"\1", value.strip())
    return value


class MetricDimension(StrEnum):
    """One charted metric; each dimension keeps its own rolling history."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK_IO = "disk_io"
    NETWORK = "network"


class MetricKind(StrEnum):
    PERCENTAGE = "percentage"
    RATE = "rate"


METRIC_KINDS: dict[MetricDimension, MetricKind] = {
    MetricDimension.CPU: MetricKind.PERCENTAGE,
    MetricDimension.MEMORY: MetricKind.PERCENTAGE,
    MetricDimension.DISK_IO: MetricKind.RATE,
    MetricDimension.NETWORK: MetricKind.RATE,
}

METRIC_UNITS: dict[MetricDimension, str] = {
    MetricDimension.CPU: "%",
    MetricDimension.MEMORY: "%",
    MetricDimension.DISK_IO: "ops/s",
    MetricDimension.NETWORK: "MB/s",
}


class ActionType(StrEnum):
    """Load-generation actions the backend knows how to run."""

    CPU_STRESS = "cpu-stress"
    MEMORY_SURGE = "memory-surge"
    DISK_STORM = "disk-storm"
    TRAFFIC_FLOOD = "traffic-flood"


class ActionStatus(StrEnum):
    """Lifecycle states reported by the backend for an action."""

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


_ACTION_FIELDS = frozenset(
    {"id", "type", "status", "started_at", "completed_at", "progress", "error", "parameters"}
)

FiniteNumber = Annotated[float, Field(strict=True, allow_inf_nan=False)]


class MetricSample(BaseModel):
    """Immutable snapshot returned by ``GET /api/metrics``.

    Values are passed through unclamped: a CPU reading above 100 during a
    burst is reported as-is and left to the presentation layer.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Instant the backend took the sample.")
    cpu: FiniteNumber = Field(..., description="Total CPU usage in percent.")
    memory: FiniteNumber = Field(..., description="Memory usage in percent.")
    disk_io: FiniteNumber = Field(..., description="Disk operations per second.")
    network: FiniteNumber = Field(..., description="Network throughput in MB/s.")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _trim_timestamp(cls, value: Any) -> Any:
        return _trim_fraction(value)

    def value(self, dimension: MetricDimension) -> float:
        return float(getattr(self, MetricDimension(dimension).value))


class Action(BaseModel):
    """A load-generation task as reported by ``GET /api/actions/active``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque backend-generated identifier.")
    type: ActionType | str = Field(..., description="Action type, e.g. cpu-stress.")
    status: ActionStatus | str = Field(default=ActionStatus.RUNNING)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    progress: float = Field(default=0.0, description="Completion ratio between 0 and 1.")
    error: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_parameters(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        extras = {key: value for key, value in data.items() if key not in _ACTION_FIELDS}
        if not extras:
            return data
        known = {key: value for key, value in data.items() if key in _ACTION_FIELDS}
        params = dict(known.get("parameters") or {})
        params.update(extras)
        known["parameters"] = params
        return known

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must not be blank")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("type must not be blank")
            try:
                return ActionType(value)
            except ValueError:
                return value
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return ActionStatus(value.strip())
            except ValueError:
                return value.strip()
        return value

    @field_validator("started_at", "completed_at", mode="before")
    @classmethod
    def _trim_times(cls, value: Any) -> Any:
        return _trim_fraction(value)


class ActionReceipt(BaseModel):
    """Response returned by the backend right after an action is accepted."""

    id: str
    status: str
    started_at: datetime | None = None
    message: str | None = None

    @field_validator("started_at", mode="before")
    @classmethod
    def _trim_started(cls, value: Any) -> Any:
        return _trim_fraction(value)


class CpuStressRequest(BaseModel):
    """Body for ``POST /api/actions/cpu-stress``."""

    action_type: ClassVar[ActionType] = ActionType.CPU_STRESS

    target_percent: int = Field(..., ge=0, le=95, description="Target CPU percentage.")
    duration_seconds: int = Field(..., ge=1, le=30, description="How long to hold the load.")


class MemorySurgeRequest(BaseModel):
    """Body for ``POST /api/actions/memory-surge``."""

    action_type: ClassVar[ActionType] = ActionType.MEMORY_SURGE

    size_mb: int = Field(..., ge=1, le=2048, description="Memory to allocate in MB.")
    duration_seconds: int = Field(..., ge=1, le=60, description="How long to hold the memory.")


MAX_DISK_TOTAL_MB = 100


class DiskStormRequest(BaseModel):
    """Body for ``POST /api/actions/disk-storm``."""

    action_type: ClassVar[ActionType] = ActionType.DISK_STORM

    operations: int = Field(..., ge=1, le=10_000, description="Number of files to churn.")
    file_size_kb: int = Field(..., ge=1, le=1024, description="Size of each file in KB.")

    @model_validator(mode="after")
    def _total_within_limit(self) -> "DiskStormRequest":
        total_mb = (self.operations * self.file_size_kb) // 1024
        if total_mb > MAX_DISK_TOTAL_MB:
            raise ValueError(
                f"total disk usage would be {total_mb} MB, exceeds limit of {MAX_DISK_TOTAL_MB} MB"
            )
        return self


class TrafficFloodRequest(BaseModel):
    """Body for ``POST /api/actions/traffic-flood``."""

    action_type: ClassVar[ActionType] = ActionType.TRAFFIC_FLOOD

    requests_per_sec: int = Field(..., ge=1, le=1000, description="Request rate to sustain.")
    duration_seconds: int = Field(..., ge=1, le=60, description="How long to sustain it.")
    target_url: str = Field(
        default="", description="URL to hit; empty lets the backend pick its dummy endpoint."
    )


ActionRequest = Union[CpuStressRequest, MemorySurgeRequest, DiskStormRequest, TrafficFloodRequest]

REQUEST_MODELS: dict[ActionType, type[ActionRequest]] = {
    ActionType.CPU_STRESS: CpuStressRequest,
    ActionType.MEMORY_SURGE: MemorySurgeRequest,
    ActionType.DISK_STORM: DiskStormRequest,
    ActionType.TRAFFIC_FLOOD: TrafficFloodRequest,
}


def build_request(action_type: ActionType | str, params: Any) -> ActionRequest:
    """Coerce ``params`` into the typed request body for ``action_type``.

    Raises ``ValueError`` for unknown action types and pydantic's
    ``ValidationError`` (itself a ``ValueError``) for out-of-range values.
    """

    kind = ActionType(action_type)
    model = REQUEST_MODELS[kind]
    if isinstance(params, model):
        return params
    if isinstance(params, BaseModel):
        raise ValueError(f"{type(params).__name__} cannot start a {kind.value} action")
    return model.model_validate(dict(params or {}))


__all__ = [
    "MetricDimension",
    "MetricKind",
    "METRIC_KINDS",
    "METRIC_UNITS",
    "ActionType",
    "ActionStatus",
    "MetricSample",
    "Action",
    "ActionReceipt",
    "CpuStressRequest",
    "MemorySurgeRequest",
    "DiskStormRequest",
    "TrafficFloodRequest",
    "ActionRequest",
    "REQUEST_MODELS",
    "MAX_DISK_TOTAL_MB",
    "build_request",
]
