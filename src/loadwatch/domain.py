"""Chart axis bounds derived from a metric's rolling history."""

from __future__ import annotations

from collections.abc import Iterable

from .history import HistoryPoint, RollingHistory
from .models import METRIC_KINDS, MetricDimension, MetricKind

PERCENT_DOMAIN: tuple[float, float] = (0.0, 100.0)
DEFAULT_DOMAIN: tuple[float, float] = (0.0, 100.0)
PADDING_RATIO = 0.1
FLAT_PADDING = 10.0


def _values(history: RollingHistory | Iterable[HistoryPoint | float]) -> list[float]:
    if isinstance(history, RollingHistory):
        return history.values()
    return [item.value if isinstance(item, HistoryPoint) else float(item) for item in history]


def compute_domain(
    history: RollingHistory | Iterable[HistoryPoint | float], kind: MetricKind | str
) -> tuple[float, float]:
    """Return ``(min, max)`` for a chart's vertical axis.

    Percentage metrics always use ``(0, 100)``. Rate metrics pad the observed
    range by 10% on each side (a fixed 10 for flat series) and never drop
    below zero.
    """

    if MetricKind(kind) is MetricKind.PERCENTAGE:
        return PERCENT_DOMAIN
    values = _values(history)
    if not values:
        return DEFAULT_DOMAIN
    data_min = min(values)
    data_max = max(values)
    padding = (data_max - data_min) * PADDING_RATIO
    if padding == 0:
        padding = FLAT_PADDING
    return max(0.0, data_min - padding), data_max + padding


def domain_for(
    dimension: MetricDimension | str, history: RollingHistory | Iterable[HistoryPoint | float]
) -> tuple[float, float]:
    return compute_domain(history, METRIC_KINDS[MetricDimension(dimension)])


__all__ = ["compute_domain", "domain_for", "PERCENT_DOMAIN", "DEFAULT_DOMAIN"]
