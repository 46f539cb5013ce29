from __future__ import annotations

import asyncio

import pytest

from loadwatch.config import AppConfig
from loadwatch.contracts.error import DispatchError
from loadwatch.dashboard import Dashboard
from loadwatch.models import MetricDimension
from tests.util.payloads import FakeBackend, action_payload, metrics_payload


def _dashboard(backend: FakeBackend, capacity: int = 60) -> Dashboard:
    cfg = AppConfig()
    cfg.polling.history_capacity = capacity
    return Dashboard(cfg, client=backend)


def test_refresh_populates_reads(fake_backend: FakeBackend) -> None:
    fake_backend.metrics[:] = [metrics_payload(cpu=20, disk_io=5.0, network=2.0)]
    fake_backend.actions[:] = [
        {"actions": [action_payload("a", "disk-storm"), action_payload("b", "cpu-stress")]}
    ]
    dashboard = _dashboard(fake_backend)
    assert dashboard.current_sample is None
    assert asyncio.run(dashboard.refresh()) is True
    assert dashboard.current_sample is not None
    assert dashboard.active_count == 2
    assert dashboard.is_running("disk-storm")
    assert not dashboard.is_running("traffic-flood")
    assert dashboard.domain(MetricDimension.CPU) == (0.0, 100.0)
    assert dashboard.domain("disk_io") == (0.0, 15.0)
    assert [p.value for p in dashboard.history("network")] == [2.0]
    assert set(dashboard.histories()) == set(MetricDimension)
    assert dashboard.last_error is None
    assert dashboard.view().active_count == 2


def test_end_to_end_capacity_two_keeps_latest_values(fake_backend: FakeBackend) -> None:
    fake_backend.metrics[:] = [metrics_payload(cpu=v, offset=i) for i, v in enumerate((10, 50, 90))]
    dashboard = _dashboard(fake_backend, capacity=2)

    async def scenario() -> None:
        for _ in range(3):
            await dashboard.refresh()

    asyncio.run(scenario())
    assert [point.value for point in dashboard.history("cpu")] == [50.0, 90.0]


def test_presets_use_configured_defaults(fake_backend: FakeBackend) -> None:
    cfg = AppConfig()
    cfg.actions.presets["cpu-stress"]["target_percent"] = 60
    dashboard = Dashboard(cfg, client=fake_backend)

    async def scenario() -> None:
        await dashboard.start_cpu_stress()
        await dashboard.start_memory_surge()
        await dashboard.start_disk_storm()
        await dashboard.start_traffic_flood()

    asyncio.run(scenario())
    starts = [payload for name, payload in fake_backend.calls if name == "start"]
    assert starts == [
        ("cpu-stress", {"target_percent": 60, "duration_seconds": 10}),
        ("memory-surge", {"size_mb": 500, "duration_seconds": 30}),
        ("disk-storm", {"operations": 1000, "file_size_kb": 10}),
        ("traffic-flood", {"requests_per_sec": 100, "duration_seconds": 10, "target_url": ""}),
    ]


def test_commands_do_not_mutate_state(fake_backend: FakeBackend) -> None:
    dashboard = _dashboard(fake_backend)

    async def scenario() -> None:
        await dashboard.start_action("cpu-stress")
        await dashboard.stop_action("cpu-stress-1")
        await dashboard.stop_all()

    asyncio.run(scenario())
    assert dashboard.active_count == 0
    assert dashboard.current_sample is None


def test_unknown_action_type_is_a_dispatch_error(fake_backend: FakeBackend) -> None:
    dashboard = _dashboard(fake_backend)
    with pytest.raises(DispatchError):
        asyncio.run(dashboard.start_action("gpu-melt"))


def test_mount_and_unmount_drive_the_poll_loop(fake_backend: FakeBackend) -> None:
    cfg = AppConfig()
    cfg.polling.interval_seconds = 0.01
    dashboard = Dashboard(cfg, client=fake_backend)

    async def scenario() -> None:
        updated = asyncio.Event()
        dashboard.poller.on_update = lambda _state: updated.set()
        dashboard.mount()
        await asyncio.wait_for(updated.wait(), timeout=5)
        await dashboard.unmount()

    asyncio.run(scenario())
    assert dashboard.current_sample is not None
    assert not dashboard.poller.running
    with pytest.raises(DispatchError):
        asyncio.run(dashboard.stop_all())


def test_remount_reopens_commands(fake_backend: FakeBackend) -> None:
    cfg = AppConfig()
    cfg.polling.interval_seconds = 0.01
    dashboard = Dashboard(cfg, client=fake_backend)

    async def scenario() -> None:
        dashboard.mount()
        await dashboard.unmount()
        assert dashboard.dispatcher.closed
        dashboard.mount()
        assert dashboard.poller.running
        started = await dashboard.start_cpu_stress()
        assert started is not None
        assert started.id == "cpu-stress-1"
        assert await dashboard.stop_all() is True
        await dashboard.unmount()

    asyncio.run(scenario())
    names = [name for name, _ in fake_backend.calls]
    assert "start" in names
    assert "stop-all" in names
