from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from loadwatch.dashboard import Dashboard
from loadwatch.history import HistoryPoint
from loadwatch.models import Action, MetricDimension
from loadwatch.state import DashboardView
from loadwatch.tui import __main__ as tui_main
from loadwatch.tui import app as tui_app
from loadwatch.tui.app import (
    _TEXTUAL_ERR,
    LoadwatchApp,
    format_actions,
    format_error,
    format_metric_panel,
    format_status,
    sparkline,
)
from tests.util.payloads import FakeBackend, action_payload, metrics_payload


class DummyWidget:
    def __init__(self) -> None:
        self.value = ""

    def update(self, message: str) -> None:
        self.value = message


def _view(actions: tuple[Action, ...] = (), last_updated: datetime | None = None) -> DashboardView:
    return DashboardView(
        sample=None,
        histories={dimension: () for dimension in MetricDimension},
        actions=actions,
        last_error=None,
        last_updated=last_updated,
    )


def test_sparkline_scales_to_domain() -> None:
    assert sparkline([0.0, 50.0, 100.0], (0.0, 100.0)) == "▁▅█"
    assert sparkline([150.0, -10.0], (0.0, 100.0)) == "█▁"
    assert sparkline([], (0.0, 100.0)) == ""


def test_sparkline_flat_domain_and_width() -> None:
    assert sparkline([3.0, 3.0], (3.0, 3.0)) == "▁▁"
    assert len(sparkline([float(i) for i in range(100)], (0.0, 100.0), width=10)) == 10


def test_metric_panel_waiting_and_populated() -> None:
    assert format_metric_panel(MetricDimension.CPU, (), (0.0, 100.0), False) == (
        "CPU: waiting for samples…"
    )
    points = (HistoryPoint("12:00:00", 20.0), HistoryPoint("12:00:01", 40.0))
    text = format_metric_panel(MetricDimension.DISK_IO, points, (0.0, 44.0), True)
    first, chart, axis = text.splitlines()
    assert first == "Disk I/O: 40.0 ops/s  ● running"
    assert len(chart) == 2
    assert axis.startswith("12:00:00 → 12:00:01")


def test_status_actions_and_error_text() -> None:
    assert "Last update: never" in format_status(_view(), "http://localhost:8080/api")
    stamped = _view(last_updated=datetime(2024, 5, 1, 12, 0, tzinfo=UTC))
    assert "Source: http://localhost:8080/api" in format_status(stamped, "http://localhost:8080/api")
    assert format_actions(_view()) == "No active actions."
    action = Action.model_validate(action_payload("a1", "disk-storm"))
    assert format_actions(_view((action,))) == "disk-storm  running  a1"
    assert format_error(None) == ""
    assert format_error("boom") == "⚠ boom"


def test_render_view_updates_widgets(monkeypatch: pytest.MonkeyPatch) -> None:
    if _TEXTUAL_ERR is not None:
        pytest.skip("Textual not available")

    backend = FakeBackend()
    backend.metrics.append(metrics_payload(cpu=42.0))
    backend.actions.append({"actions": [action_payload("a1")], "count": 1})
    dashboard = Dashboard(client=backend)
    asyncio.run(dashboard.refresh())

    app = LoadwatchApp(dashboard)
    widgets: dict[str, DummyWidget] = {}
    monkeypatch.setattr(
        app, "query_one", lambda selector, _cls=None: widgets.setdefault(selector, DummyWidget())
    )
    app._render_view()

    assert "Active actions: 1" in widgets["#status"].value
    assert widgets["#metric-cpu"].value.startswith("CPU: 42.0 %  ● running")
    assert "running" not in widgets["#metric-memory"].value
    assert "a1" in widgets["#actions"].value
    assert widgets["#error"].value == ""


def test_dispatch_failure_is_shown_as_notice(monkeypatch: pytest.MonkeyPatch) -> None:
    if _TEXTUAL_ERR is not None:
        pytest.skip("Textual not available")

    backend = FakeBackend()
    backend.metrics.append(metrics_payload())
    backend.actions.append({"actions": [], "count": 0})
    app = LoadwatchApp(Dashboard(client=backend))
    widgets: dict[str, DummyWidget] = {}
    monkeypatch.setattr(
        app, "query_one", lambda selector, _cls=None: widgets.setdefault(selector, DummyWidget())
    )
    scheduled: list[object] = []
    monkeypatch.setattr(app, "run_worker", lambda work, **_kw: scheduled.append(work))

    app.action_start("gpu-melt")
    asyncio.run(scheduled[0])  # type: ignore[arg-type]
    assert widgets["#error"].value.startswith("⚠ Start gpu-melt failed")
    assert not [name for name, _ in backend.calls if name == "start"]


def test_run_tui_builds_app_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[Dashboard] = []

    class FakeApp:
        def __init__(self, dashboard: Dashboard) -> None:
            launched.append(dashboard)

        def run(self) -> None:
            return None

    monkeypatch.setattr(tui_app, "LoadwatchApp", FakeApp)
    tui_app.run_tui()
    assert launched[0].config.backend.base_url == "http://localhost:8080/api"


def test_tui_entry_point_applies_flag_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("LOADWATCH_CONFIG", "LOADWATCH_BASE_URL", "LOADWATCH_POLL_INTERVAL"):
        monkeypatch.delenv(key, raising=False)
    captured: list[object] = []
    monkeypatch.setattr(tui_main, "run_tui", captured.append)
    tui_main.main(["--base-url", "http://10.1.2.3:9000/api/", "--poll-interval", "0.5"])
    (cfg,) = captured
    assert cfg.backend.base_url == "http://10.1.2.3:9000/api"  # type: ignore[attr-defined]
    assert cfg.polling.interval_seconds == 0.5  # type: ignore[attr-defined]
