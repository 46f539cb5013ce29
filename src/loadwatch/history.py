"""Fixed-capacity rolling history buffers used for charting."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from .models import MetricDimension

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import MetricSample

DEFAULT_CAPACITY = 60


def format_label(timestamp: datetime) -> str:
    """Render a sample instant as local wall-clock time for chart labels."""

    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone()
    return timestamp.strftime("%H:%M:%S")


@dataclass(frozen=True, slots=True)
class HistoryPoint:
    label: str
    value: float


class RollingHistory:
    """Sliding window of the most recent ``capacity`` points, oldest first.

    Appending to a full buffer evicts the single oldest point. The capacity
    is fixed at construction.
    """

    __slots__ = ("_capacity", "_points")

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise TypeError("capacity must be an integer")
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1; got {capacity}")
        self._capacity = capacity
        self._points: deque[HistoryPoint] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, point: HistoryPoint) -> None:
        self._points.append(point)

    def snapshot(self) -> tuple[HistoryPoint, ...]:
        return tuple(self._points)

    def values(self) -> list[float]:
        return [point.value for point in self._points]

    def latest(self) -> HistoryPoint | None:
        return self._points[-1] if self._points else None

    def clear(self) -> None:
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[HistoryPoint]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"RollingHistory(capacity={self._capacity}, length={len(self._points)})"


def to_points(sample: MetricSample) -> dict[MetricDimension, HistoryPoint]:
    """Project one sample onto a history point per metric dimension."""

    label = format_label(sample.timestamp)
    return {
        dimension: HistoryPoint(label=label, value=sample.value(dimension))
        for dimension in MetricDimension
    }


class MetricHistories:
    """One :class:`RollingHistory` per metric dimension, all the same capacity."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._buffers = {dimension: RollingHistory(capacity) for dimension in MetricDimension}

    @property
    def capacity(self) -> int:
        return self._buffers[MetricDimension.CPU].capacity

    def __getitem__(self, dimension: MetricDimension | str) -> RollingHistory:
        return self._buffers[MetricDimension(dimension)]

    def append_sample(self, sample: MetricSample) -> None:
        for dimension, point in to_points(sample).items():
            self._buffers[dimension].append(point)

    def snapshot(self) -> dict[MetricDimension, tuple[HistoryPoint, ...]]:
        return {dimension: buffer.snapshot() for dimension, buffer in self._buffers.items()}

    def clear(self) -> None:
        for buffer in self._buffers.values():
            buffer.clear()


__all__ = [
    "DEFAULT_CAPACITY",
    "HistoryPoint",
    "RollingHistory",
    "MetricHistories",
    "format_label",
    "to_points",
]
