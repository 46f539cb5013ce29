from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from loadwatch.history import (
    HistoryPoint,
    MetricHistories,
    RollingHistory,
    format_label,
    to_points,
)
from loadwatch.models import MetricDimension, MetricSample


def _point(value: float, label: str = "12:00:00") -> HistoryPoint:
    return HistoryPoint(label=label, value=value)


@given(
    capacity=st.integers(min_value=1, max_value=80),
    values=st.lists(st.floats(allow_nan=False, allow_infinity=False), max_size=200),
)
def test_history_keeps_last_capacity_points_in_order(capacity: int, values: list[float]) -> None:
    history = RollingHistory(capacity)
    for value in values:
        history.append(_point(value))
        assert len(history) <= capacity
    assert len(history) == min(len(values), capacity)
    assert history.values() == values[-capacity:]


def test_append_to_full_buffer_evicts_only_oldest() -> None:
    history = RollingHistory(3)
    for value in (1.0, 2.0, 3.0):
        history.append(_point(value))
    history.append(_point(4.0))
    assert history.values() == [2.0, 3.0, 4.0]
    assert history.latest() == _point(4.0)


def test_capacity_one_holds_latest_only() -> None:
    history = RollingHistory(1)
    history.append(_point(1.0))
    history.append(_point(2.0))
    assert history.values() == [2.0]


@pytest.mark.parametrize("capacity", [0, -1])
def test_capacity_below_one_is_rejected(capacity: int) -> None:
    with pytest.raises(ValueError):
        RollingHistory(capacity)


@pytest.mark.parametrize("capacity", [True, 2.5, "3"])
def test_capacity_must_be_an_integer(capacity: object) -> None:
    with pytest.raises(TypeError):
        RollingHistory(capacity)  # type: ignore[arg-type]


def test_snapshot_is_detached_from_buffer() -> None:
    history = RollingHistory(2)
    history.append(_point(1.0))
    snap = history.snapshot()
    history.append(_point(2.0))
    assert snap == (_point(1.0),)
    assert isinstance(snap, tuple)


def test_empty_history_has_no_latest_and_clear_resets() -> None:
    history = RollingHistory(4)
    assert history.latest() is None
    history.append(_point(5.0))
    history.clear()
    assert len(history) == 0
    assert history.capacity == 4
    assert "capacity=4" in repr(history)


def test_format_label_uses_local_wall_clock_for_aware_timestamps() -> None:
    ts = datetime(2024, 5, 1, 9, 30, 15, tzinfo=timezone(timedelta(hours=2)))
    assert format_label(ts) == ts.astimezone().strftime("%H:%M:%S")
    assert format_label(datetime(2024, 5, 1, 9, 30, 15)) == "09:30:15"


def test_to_points_projects_every_dimension() -> None:
    sample = MetricSample(
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        cpu=45.0,
        memory=60.5,
        disk_io=12.0,
        network=3.25,
    )
    points = to_points(sample)
    assert set(points) == set(MetricDimension)
    assert points[MetricDimension.CPU].value == 45.0
    assert points[MetricDimension.NETWORK].value == 3.25
    assert len({point.label for point in points.values()}) == 1


def test_metric_histories_share_capacity_and_append_together() -> None:
    histories = MetricHistories(2)
    for cpu in (10.0, 50.0, 90.0):
        histories.append_sample(
            MetricSample(
                timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
                cpu=cpu,
                memory=1.0,
                disk_io=2.0,
                network=3.0,
            )
        )
    assert histories.capacity == 2
    assert histories["cpu"].values() == [50.0, 90.0]
    snap = histories.snapshot()
    assert all(len(points) == 2 for points in snap.values())
    histories.clear()
    assert all(len(histories[dimension]) == 0 for dimension in MetricDimension)
