"""Dashboard facade tying the client, poll loop and dispatcher together."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .client import BackendClient
from .config import DEFAULT_CONFIG, AppConfig
from .dispatcher import CommandDispatcher
from .domain import domain_for
from .history import HistoryPoint
from .models import Action, ActionRequest, ActionType, MetricDimension, MetricSample
from .poller import PollLoop
from .state import DashboardState, DashboardView

logger = logging.getLogger(__name__)


class Dashboard:
    """What a presentation layer needs: live state, chart bounds and commands.

    ``mount`` starts polling on the running event loop and ``unmount`` stops
    it. Commands never update state directly; their effect shows up on the
    next poll cycle.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        client: Any | None = None,
        sleep: Any | None = None,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        backend = self.config.backend
        self.client = client or BackendClient(backend.base_url, backend.timeout_seconds)
        self.state = DashboardState(self.config.polling.history_capacity)
        poll_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.poller = PollLoop(
            self.client, self.state, self.config.polling.interval_seconds, **poll_kwargs
        )
        self.dispatcher = CommandDispatcher(self.client)

    # lifecycle -----------------------------------------------------------------

    def mount(self) -> None:
        logger.info(
            "Dashboard polling %s every %.2fs", self.config.backend.base_url, self.poller.interval
        )
        self.dispatcher.open()
        self.poller.start()

    async def unmount(self) -> None:
        self.dispatcher.close()
        await self.poller.aclose()
        logger.info("Dashboard stopped after %d cycles", self.poller.cycles)

    async def refresh(self) -> bool:
        return await self.poller.poll_once()

    # reads ---------------------------------------------------------------------

    @property
    def current_sample(self) -> MetricSample | None:
        return self.state.current_sample

    def history(self, dimension: MetricDimension | str) -> tuple[HistoryPoint, ...]:
        return self.state.histories[dimension].snapshot()

    def histories(self) -> dict[MetricDimension, tuple[HistoryPoint, ...]]:
        return self.state.histories.snapshot()

    def domain(self, dimension: MetricDimension | str) -> tuple[float, float]:
        return domain_for(dimension, self.state.histories[dimension])

    @property
    def active_count(self) -> int:
        return self.state.registry.count()

    def active_actions(self) -> tuple[Action, ...]:
        return self.state.registry.actions()

    def is_running(self, action_type: ActionType | str) -> bool:
        return self.state.registry.is_running(action_type)

    @property
    def last_error(self) -> str | None:
        return self.state.error_message

    def view(self) -> DashboardView:
        return self.state.view()

    # commands ------------------------------------------------------------------

    async def start_action(
        self,
        action_type: ActionType | str,
        params: ActionRequest | Mapping[str, Any] | None = None,
    ) -> Action | None:
        if params is None:
            try:
                params = self.config.actions.for_type(action_type)
            except (KeyError, ValueError):
                params = {}
        return await self.dispatcher.start(action_type, params)

    async def stop_action(self, action_id: str) -> bool | None:
        return await self.dispatcher.stop(action_id)

    async def stop_all(self) -> bool | None:
        return await self.dispatcher.stop_all()

    async def start_cpu_stress(self) -> Action | None:
        return await self.start_action(ActionType.CPU_STRESS)

    async def start_memory_surge(self) -> Action | None:
        return await self.start_action(ActionType.MEMORY_SURGE)

    async def start_disk_storm(self) -> Action | None:
        return await self.start_action(ActionType.DISK_STORM)

    async def start_traffic_flood(self) -> Action | None:
        return await self.start_action(ActionType.TRAFFIC_FLOOD)


__all__ = ["Dashboard"]
