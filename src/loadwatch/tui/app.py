"""Textual TUI for the loadwatch dashboard."""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, cast

from loadwatch.config import AppConfig
from loadwatch.contracts.error import DispatchError
from loadwatch.dashboard import Dashboard
from loadwatch.history import HistoryPoint
from loadwatch.models import METRIC_UNITS, ActionType, MetricDimension
from loadwatch.state import DashboardView

logger = logging.getLogger(__name__)

_TEXTUAL_ERR: Exception | None = None
if TYPE_CHECKING:  # pragma: no cover - only for static analysis
    from textual.app import App as AppBase
    from textual.app import ComposeResult
    from textual.binding import Binding
    from textual.widgets import Footer, Header, Static
else:  # pragma: no cover - guarded runtime import
    try:
        from textual.app import App as AppBase  # type: ignore[import-not-found]
        from textual.app import ComposeResult
        from textual.binding import Binding  # type: ignore[import-not-found]
        from textual.widgets import Footer, Header, Static  # type: ignore[import-not-found]
    except Exception as exc:  # pragma: no cover  # noqa: BLE001
        _TEXTUAL_ERR = exc
        AppBase = cast(Any, object)
        ComposeResult = cast(Any, object)
        Binding = cast(Any, object)
        Footer = cast(Any, object)
        Header = cast(Any, object)
        Static = cast(Any, object)

SPARK_CHARS = "▁▂▃▄▅▆▇█"
SPARK_WIDTH = 60

PANEL_TITLES: dict[MetricDimension, str] = {
    MetricDimension.CPU: "CPU",
    MetricDimension.MEMORY: "Memory",
    MetricDimension.DISK_IO: "Disk I/O",
    MetricDimension.NETWORK: "Network",
}

DRIVING_ACTION: dict[MetricDimension, ActionType] = {
    MetricDimension.CPU: ActionType.CPU_STRESS,
    MetricDimension.MEMORY: ActionType.MEMORY_SURGE,
    MetricDimension.DISK_IO: ActionType.DISK_STORM,
    MetricDimension.NETWORK: ActionType.TRAFFIC_FLOOD,
}


def sparkline(
    values: Sequence[float], domain: tuple[float, float], width: int = SPARK_WIDTH
) -> str:
    """Render the last ``width`` values as block characters scaled to ``domain``."""

    if not values:
        return ""
    low, high = domain
    span = high - low
    top = len(SPARK_CHARS) - 1
    chars = []
    for value in list(values)[-width:]:
        if span <= 0 or not math.isfinite(value):
            index = 0
        else:
            ratio = (value - low) / span
            index = round(min(1.0, max(0.0, ratio)) * top)
        chars.append(SPARK_CHARS[index])
    return "".join(chars)


def format_metric_panel(
    dimension: MetricDimension,
    points: Sequence[HistoryPoint],
    domain: tuple[float, float],
    running: bool,
) -> str:
    title = PANEL_TITLES[dimension]
    unit = METRIC_UNITS[dimension]
    marker = "  ● running" if running else ""
    if not points:
        return f"{title}: waiting for samples…{marker}"
    latest = points[-1]
    lines = [
        f"{title}: {latest.value:.1f} {unit}{marker}",
        sparkline([point.value for point in points], domain),
        f"{points[0].label} → {latest.label}   axis {domain[0]:.1f}–{domain[1]:.1f}",
    ]
    return "\n".join(lines)


def format_status(view: DashboardView, base_url: str) -> str:
    updated = view.last_updated.astimezone().strftime("%H:%M:%S") if view.last_updated else "never"
    return f"Active actions: {view.active_count}   Last update: {updated}   Source: {base_url}"


def format_actions(view: DashboardView) -> str:
    if not view.actions:
        return "No active actions."
    return "\n".join(f"{action.type}  {action.status}  {action.id}" for action in view.actions)


def format_error(message: str | None) -> str:
    return f"⚠ {message}" if message else ""


if _TEXTUAL_ERR is None:

    class LoadwatchApp(AppBase[None]):
        """Textual application rendering live metrics and load-action controls."""

        CSS = """
        Screen { layout: vertical; }
        #status { padding: 1 2; background: #1f2937; color: #e5e7eb; }
        .metric { padding: 0 2; height: auto; }
        #actions { padding: 1 2; color: #94a3b8; }
        #error { padding: 0 2; color: #f97316; }
        """

        BINDINGS = [
            Binding("c", "start('cpu-stress')", "CPU stress"),
            Binding("m", "start('memory-surge')", "Memory surge"),
            Binding("d", "start('disk-storm')", "Disk storm"),
            Binding("t", "start('traffic-flood')", "Traffic flood"),
            Binding("s", "stop_all", "Stop all"),
            Binding("r", "refresh", "Refresh"),
            Binding("q", "quit", "Quit"),
        ]

        def __init__(self, dashboard: Dashboard) -> None:
            super().__init__()
            self.dashboard = dashboard
            self._notice: str | None = None

        def compose(self) -> ComposeResult:
            yield Header(show_clock=True)
            yield Static("Waiting for metrics…", id="status")
            for dimension in MetricDimension:
                yield Static("", id=f"metric-{dimension.value}", classes="metric")
            yield Static("", id="actions")
            yield Static("", id="error")
            yield Footer()

        def on_mount(self) -> None:
            self.dashboard.poller.on_update = lambda _state: self._render_view()
            self.dashboard.poller.on_error = lambda _exc: self._render_view()
            self.dashboard.mount()

        async def on_unmount(self) -> None:
            await self.dashboard.unmount()

        def _render_view(self) -> None:
            view = self.dashboard.view()
            self.query_one("#status", Static).update(
                format_status(view, self.dashboard.config.backend.base_url)
            )
            running = {str(action.type) for action in view.actions}
            for dimension in MetricDimension:
                panel = self.query_one(f"#metric-{dimension.value}", Static)
                panel.update(
                    format_metric_panel(
                        dimension,
                        view.histories[dimension],
                        self.dashboard.domain(dimension),
                        DRIVING_ACTION[dimension].value in running,
                    )
                )
            self.query_one("#actions", Static).update(format_actions(view))
            self.query_one("#error", Static).update(format_error(self._notice or view.last_error))

        def _dispatch(self, label: str, call: Callable[[], Awaitable[Any]]) -> None:
            async def _run() -> None:
                try:
                    await call()
                except DispatchError as exc:
                    self._notice = f"{label} failed: {exc}"
                else:
                    self._notice = None
                self._render_view()

            self.run_worker(_run(), group="dispatch", exclusive=False)

        def action_start(self, action_type: str) -> None:
            self._dispatch(
                f"Start {action_type}", lambda: self.dashboard.start_action(action_type)
            )

        def action_stop_all(self) -> None:
            self._dispatch("Stop all", self.dashboard.stop_all)

        def action_refresh(self) -> None:
            self.run_worker(self.dashboard.refresh(), group="refresh", exclusive=False)

else:  # pragma: no cover - exercised only when Textual is absent

    class LoadwatchApp:  # type: ignore[no-redef]
        def __init__(self, *_args: Any, **_kwargs: Any) -> None:
            raise ImportError(
                "The terminal dashboard requires 'textual'. Install with `pip install textual`."
            ) from _TEXTUAL_ERR


def run_tui(config: AppConfig | None = None) -> None:
    """Launch the Textual dashboard against the configured backend."""

    app = LoadwatchApp(Dashboard(config))
    app.run()


__all__ = [
    "LoadwatchApp",
    "run_tui",
    "sparkline",
    "format_metric_panel",
    "format_status",
    "format_actions",
    "format_error",
]
