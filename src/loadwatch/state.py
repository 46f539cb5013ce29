"""Shared dashboard state written by the poll loop and read by presentation."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from .history import DEFAULT_CAPACITY, HistoryPoint, MetricHistories
from .models import Action, MetricDimension, MetricSample
from .registry import ActionRegistry


@dataclass(frozen=True)
class DashboardView:
    """Point-in-time copy of everything the presentation layer renders."""

    sample: MetricSample | None
    histories: dict[MetricDimension, tuple[HistoryPoint, ...]]
    actions: tuple[Action, ...]
    last_error: str | None
    last_updated: datetime | None

    @property
    def active_count(self) -> int:
        return len(self.actions)


class DashboardState:
    """Current sample, four rolling histories, the action registry and last error.

    Only the poll loop writes here. Each successful cycle is applied in one
    step under the lock, so readers never observe a half-applied update.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.histories = MetricHistories(capacity)
        self.registry = ActionRegistry()
        self.current_sample: MetricSample | None = None
        self.last_error: Exception | None = None
        self.last_updated: datetime | None = None
        self._lock = threading.RLock()

    @property
    def error_message(self) -> str | None:
        return str(self.last_error) if self.last_error is not None else None

    def apply(
        self, sample: MetricSample, actions: Iterable[Action], now: datetime | None = None
    ) -> None:
        with self._lock:
            self.histories.append_sample(sample)
            self.registry.reconcile(actions)
            self.current_sample = sample
            self.last_error = None
            self.last_updated = now or datetime.now(tz=UTC)

    def record_error(self, exc: Exception) -> None:
        with self._lock:
            self.last_error = exc

    def reset(self) -> None:
        with self._lock:
            self.histories.clear()
            self.registry.reconcile(())
            self.current_sample = None
            self.last_error = None
            self.last_updated = None

    def view(self) -> DashboardView:
        with self._lock:
            return DashboardView(
                sample=self.current_sample,
                histories=self.histories.snapshot(),
                actions=self.registry.actions(),
                last_error=self.error_message,
                last_updated=self.last_updated,
            )


__all__ = ["DashboardState", "DashboardView"]
