"""In-memory action engine and synthetic metrics for the simulated backend."""

from __future__ import annotations

import logging
import random
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loadwatch.models import (
    Action,
    ActionRequest,
    ActionStatus,
    ActionType,
    CpuStressRequest,
    DiskStormRequest,
    MemorySurgeRequest,
    MetricSample,
    TrafficFloodRequest,
)

logger = logging.getLogger(__name__)

MAX_CONCURRENT = 5
MAX_START_CPU = 85.0
MAX_START_MEMORY = 75.0
DISK_OPS_PER_SECOND = 100
SIMULATED_TOTAL_MEMORY_MB = 8192
TRAFFIC_MB_PER_REQUEST = 0.005
FINISHED_RETENTION_SECONDS = 60.0

BASELINE = {"cpu": 12.0, "memory": 35.0, "disk_io": 4.0, "network": 0.4}


class EngineBusyError(RuntimeError):
    """Raised when the engine refuses to start another action."""


def duration_for(request: ActionRequest) -> float:
    if isinstance(request, DiskStormRequest):
        return max(1.0, request.operations / DISK_OPS_PER_SECOND)
    return float(request.duration_seconds)


@dataclass
class ActionRecord:
    """Mutable record kept for every action the engine has accepted."""

    id: str
    request: ActionRequest
    started_at: datetime
    started_clock: float
    duration: float
    status: ActionStatus = ActionStatus.STARTING
    completed_at: datetime | None = None
    finished_clock: float | None = None
    progress: float = 0.0
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def action_type(self) -> ActionType:
        return type(self.request).action_type

    @property
    def active(self) -> bool:
        return self.status in {ActionStatus.STARTING, ActionStatus.RUNNING}

    def to_action(self) -> Action:
        return Action(
            id=self.id,
            type=self.action_type,
            status=self.status,
            started_at=self.started_at,
            completed_at=self.completed_at,
            progress=round(self.progress, 3),
            parameters=self.parameters,
        )


class ActionEngine:
    """Accepts load actions, expires them after their duration and shapes metrics.

    Nothing is actually stressed: each running action adds a fixed
    contribution to the synthetic metrics served by ``/api/metrics``.
    """

    def __init__(
        self,
        *,
        max_concurrent: int = MAX_CONCURRENT,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
        seed: int | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._clock = clock
        self._now = now or (lambda: datetime.now(tz=UTC))
        self._rng = random.Random(seed)
        self._records: dict[str, ActionRecord] = {}
        self._lock = threading.Lock()

    def _advance(self) -> None:
        current = self._clock()
        for record in self._records.values():
            if not record.active:
                continue
            elapsed = current - record.started_clock
            if elapsed >= record.duration:
                record.status = ActionStatus.COMPLETED
                record.progress = 1.0
                record.finished_clock = record.started_clock + record.duration
                record.completed_at = self._now()
                logger.info("Action %s (%s) completed", record.id, record.action_type.value)
            else:
                record.status = ActionStatus.RUNNING
                record.progress = max(0.0, elapsed / record.duration)
        self._prune(current)

    def _prune(self, current: float) -> None:
        expired = [
            action_id
            for action_id, record in self._records.items()
            if record.finished_clock is not None
            and current - record.finished_clock > FINISHED_RETENTION_SECONDS
        ]
        for action_id in expired:
            del self._records[action_id]
        if expired:
            logger.debug("Dropped %d finished actions", len(expired))

    def _active_records(self) -> list[ActionRecord]:
        return [record for record in self._records.values() if record.active]

    def start(self, request: ActionRequest) -> ActionRecord:
        with self._lock:
            self._advance()
            if len(self._active_records()) >= self.max_concurrent:
                raise EngineBusyError("maximum concurrent actions reached")
            sample = self._sample_locked()
            if sample.cpu > MAX_START_CPU:
                raise EngineBusyError(f"CPU limit exceeded: current CPU {sample.cpu:.1f}% too high")
            if sample.memory > MAX_START_MEMORY:
                raise EngineBusyError(
                    f"memory limit exceeded: current memory {sample.memory:.1f}% too high"
                )
            record = ActionRecord(
                id=str(uuid.uuid4()),
                request=request,
                started_at=self._now(),
                started_clock=self._clock(),
                duration=duration_for(request),
                parameters=request.model_dump(),
            )
            self._records[record.id] = record
        logger.info("Started %s action %s", record.action_type.value, record.id)
        return record

    def stop(self, action_id: str) -> ActionRecord:
        with self._lock:
            self._advance()
            record = self._records.get(action_id)
            if record is None or not record.active:
                raise KeyError(action_id)
            record.status = ActionStatus.STOPPED
            record.completed_at = self._now()
            record.finished_clock = self._clock()
        logger.info("Stopped action %s", action_id)
        return record

    def stop_all(self) -> int:
        with self._lock:
            self._advance()
            stopped = 0
            for record in self._active_records():
                record.status = ActionStatus.STOPPED
                record.completed_at = self._now()
                record.finished_clock = self._clock()
                stopped += 1
        if stopped:
            logger.info("Stopped %d actions", stopped)
        return stopped

    def active(self) -> list[Action]:
        with self._lock:
            self._advance()
            return [record.to_action() for record in self._active_records()]

    def sample(self) -> MetricSample:
        with self._lock:
            self._advance()
            return self._sample_locked()

    def _jitter(self, spread: float) -> float:
        return self._rng.uniform(-spread, spread)

    def _sample_locked(self) -> MetricSample:
        cpu = BASELINE["cpu"] + self._jitter(2.0)
        memory = BASELINE["memory"] + self._jitter(1.0)
        disk_io = BASELINE["disk_io"] + self._jitter(1.0)
        network = BASELINE["network"] + self._jitter(0.1)
        for record in self._active_records():
            request = record.request
            if isinstance(request, CpuStressRequest):
                cpu += request.target_percent
            elif isinstance(request, MemorySurgeRequest):
                memory += request.size_mb / SIMULATED_TOTAL_MEMORY_MB * 100.0
            elif isinstance(request, DiskStormRequest):
                disk_io += DISK_OPS_PER_SECOND
            elif isinstance(request, TrafficFloodRequest):
                network += request.requests_per_sec * TRAFFIC_MB_PER_REQUEST
        return MetricSample(
            timestamp=self._now(),
            cpu=min(100.0, max(0.0, cpu)),
            memory=min(100.0, max(0.0, memory)),
            disk_io=max(0.0, disk_io),
            network=max(0.0, network),
        )


__all__ = ["ActionEngine", "ActionRecord", "EngineBusyError", "MAX_CONCURRENT", "duration_for"]
