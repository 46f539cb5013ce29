"""Cooperative poll loop that refreshes metrics and active actions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

from .codec import decode_active_actions, decode_sample
from .contracts.error import DecodeError, TransportError
from .state import DashboardState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


class MetricsSource(Protocol):
    def fetch_metrics(self) -> Any: ...

    def fetch_active_actions(self) -> Any: ...


class PollPhase(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


class PollLoop:
    """Fetch, decode and apply one cycle, then sleep ``interval`` and repeat.

    The next cycle is scheduled only after the previous one completes, so
    polls never overlap. A manual :meth:`poll_once` issued while a cycle is
    running is absorbed. After :meth:`stop`, results of in-flight fetches are
    discarded instead of being applied.
    """

    def __init__(
        self,
        client: MetricsSource,
        state: DashboardState,
        interval: float = DEFAULT_INTERVAL,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0; got {interval}")
        self._client = client
        self.state = state
        self.interval = interval
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._stopped = False
        self._busy_generation: int | None = None
        self.cycles = 0
        self.failures = 0
        self.on_update: Callable[[DashboardState], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None

    @property
    def phase(self) -> PollPhase:
        if self._busy_generation == self._generation:
            return PollPhase.POLLING
        if self._stopped:
            return PollPhase.STOPPED
        return PollPhase.IDLE

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin polling on the running event loop; the first cycle runs immediately."""

        if self.running:
            return
        self._stopped = False
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(self._generation), name="loadwatch-poll")

    def stop(self) -> None:
        """Cancel the pending timer and drop the results of any in-flight cycle."""

        self._stopped = True
        self._generation += 1
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _is_current(self, generation: int) -> bool:
        return not self._stopped and generation == self._generation

    async def _run(self, generation: int) -> None:
        while self._is_current(generation):
            await self.poll_once()
            if not self._is_current(generation):
                break
            await self._sleep(self.interval)

    async def poll_once(self) -> bool:
        """Run one fetch-and-update cycle; return ``True`` when state was updated."""

        if self._busy_generation == self._generation:
            logger.debug("Poll already in flight; tick absorbed")
            return False
        if self._stopped:
            return False
        generation = self._generation
        self._busy_generation = generation
        try:
            try:
                raw_metrics = await asyncio.to_thread(self._client.fetch_metrics)
                raw_actions = await asyncio.to_thread(self._client.fetch_active_actions)
                sample = decode_sample(raw_metrics)
                actions = decode_active_actions(raw_actions)
            except (TransportError, DecodeError) as exc:
                return self._fail(exc, generation)
            except Exception as exc:  # noqa: BLE001 - the loop must survive any cycle
                logger.exception("Unexpected error during poll cycle")
                return self._fail(exc, generation)

            if not self._is_current(generation):
                logger.debug("Discarding poll result after stop")
                return False
            self.state.apply(sample, actions)
            self.cycles += 1
            logger.debug(
                "Poll cycle %d applied: cpu=%.1f memory=%.1f active=%d",
                self.cycles,
                sample.cpu,
                sample.memory,
                self.state.registry.count(),
                extra={"cycle": self.cycles},
            )
            self._notify(self.on_update, self.state)
            return True
        finally:
            if self._busy_generation == generation:
                self._busy_generation = None

    def _fail(self, exc: Exception, generation: int) -> bool:
        if not self._is_current(generation):
            return False
        self.failures += 1
        self.state.record_error(exc)
        logger.warning("Poll cycle failed: %s", exc)
        self._notify(self.on_error, exc)
        return False

    @staticmethod
    def _notify(callback: Callable[[Any], None] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:  # noqa: BLE001 - observers must not break polling
            logger.exception("Poll observer raised")


__all__ = ["PollLoop", "PollPhase", "MetricsSource", "DEFAULT_INTERVAL"]
