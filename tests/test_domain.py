from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from loadwatch.domain import DEFAULT_DOMAIN, PERCENT_DOMAIN, compute_domain, domain_for
from loadwatch.history import HistoryPoint, RollingHistory
from loadwatch.models import MetricKind

finite = st.floats(min_value=0, max_value=1e6, allow_nan=False, allow_infinity=False)


@given(st.lists(st.floats(allow_nan=False, allow_infinity=False), max_size=30))
def test_percentage_domain_is_fixed(values: list[float]) -> None:
    assert compute_domain(values, MetricKind.PERCENTAGE) == (0.0, 100.0)


@given(st.lists(finite, min_size=1, max_size=60))
def test_rate_domain_contains_every_value_and_never_goes_negative(values: list[float]) -> None:
    low, high = compute_domain(values, "rate")
    assert low >= 0.0
    assert low <= min(values)
    assert high >= max(values)
    assert high > low


def test_flat_series_pads_by_ten() -> None:
    assert compute_domain([5.0, 5.0, 5.0], MetricKind.RATE) == (0.0, 15.0)
    assert compute_domain([50.0], MetricKind.RATE) == (40.0, 60.0)


def test_range_is_padded_by_ten_percent() -> None:
    low, high = compute_domain([100.0, 200.0], MetricKind.RATE)
    assert low == pytest.approx(90.0)
    assert high == pytest.approx(210.0)


def test_lower_bound_clamps_at_zero() -> None:
    low, high = compute_domain([0.0, 100.0], MetricKind.RATE)
    assert low == 0.0
    assert high == pytest.approx(110.0)


def test_empty_rate_history_uses_default_domain() -> None:
    assert compute_domain([], MetricKind.RATE) == DEFAULT_DOMAIN


def test_accepts_history_buffers_and_points() -> None:
    history = RollingHistory(5)
    for value in (10.0, 20.0):
        history.append(HistoryPoint(label="t", value=value))
    assert compute_domain(history, "rate") == pytest.approx((9.0, 21.0))
    points = [HistoryPoint(label="t", value=v) for v in (10.0, 20.0)]
    assert compute_domain(points, "rate") == pytest.approx((9.0, 21.0))


def test_domain_for_maps_dimension_to_kind() -> None:
    assert domain_for("cpu", [250.0]) == PERCENT_DOMAIN
    assert domain_for("memory", []) == PERCENT_DOMAIN
    assert domain_for("disk_io", [5.0, 5.0]) == (0.0, 15.0)
    assert domain_for("network", [1.0, 2.0]) == pytest.approx((0.9, 2.1))
