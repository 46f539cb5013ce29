from __future__ import annotations

from collections.abc import Iterator

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient

from loadwatch.codec import decode_active_actions, decode_receipt, decode_sample
from loadwatch.service import ActionEngine, create_app


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(clock: FakeClock) -> Iterator[TestClient]:
    app = create_app(ActionEngine(clock=clock, seed=7))
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        test_client.close()


def test_health_and_metrics(client: TestClient) -> None:
    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    sample = decode_sample(client.get("/api/metrics").json())
    assert 0.0 <= sample.cpu <= 100.0
    assert sample.disk_io >= 0.0


def test_start_list_and_stop_action(client: TestClient) -> None:
    response = client.post(
        "/api/actions/cpu-stress", json={"target_percent": 50, "duration_seconds": 10}
    )
    assert response.status_code == 201
    receipt = decode_receipt(response.json())
    assert receipt.status == "starting"
    assert receipt.message == "CPU stress action started"

    listing = client.get("/api/actions/active").json()
    assert listing["count"] == 1
    actions = decode_active_actions(listing)
    assert actions[0].id == receipt.id
    assert actions[0].status == "running"
    assert actions[0].parameters == {"target_percent": 50, "duration_seconds": 10}

    cpu = decode_sample(client.get("/api/metrics").json()).cpu
    assert cpu >= 50.0

    stopped = client.delete(f"/api/actions/{receipt.id}/stop")
    assert stopped.status_code == 200
    assert stopped.json() == {"status": "stopped", "message": "Action stopped successfully"}
    assert client.get("/api/actions/active").json() == {"actions": [], "count": 0}


def test_actions_expire_after_their_duration(client: TestClient, clock: FakeClock) -> None:
    client.post("/api/actions/memory-surge", json={"size_mb": 64, "duration_seconds": 5})
    client.post("/api/actions/disk-storm", json={"operations": 50, "file_size_kb": 4})
    assert client.get("/api/actions/active").json()["count"] == 2
    clock.now += 1.0
    assert [a["type"] for a in client.get("/api/actions/active").json()["actions"]] == [
        "memory-surge"
    ]
    clock.now += 5.0
    assert client.get("/api/actions/active").json()["count"] == 0


def test_stop_all_reports_count(client: TestClient) -> None:
    for _ in range(2):
        client.post("/api/actions/traffic-flood", json={"requests_per_sec": 10, "duration_seconds": 5})
    response = client.post("/api/actions/stop-all")
    assert response.status_code == 200
    assert response.json()["stopped"] == 2
    assert client.post("/api/actions/stop-all").json()["stopped"] == 0


def test_sixth_concurrent_action_is_rejected(client: TestClient) -> None:
    body = {"size_mb": 1, "duration_seconds": 30}
    for _ in range(5):
        assert client.post("/api/actions/memory-surge", json=body).status_code == 201
    rejected = client.post("/api/actions/memory-surge", json=body)
    assert rejected.status_code == 500
    assert "maximum concurrent actions reached" in rejected.text


@pytest.mark.parametrize(
    ("path", "body"),
    [
        ("/api/actions/cpu-stress", {"target_percent": 96, "duration_seconds": 10}),
        ("/api/actions/disk-storm", {"operations": 10_000, "file_size_kb": 1024}),
        ("/api/actions/traffic-flood", {"requests_per_sec": 100}),
        ("/api/actions/memory-surge", [1, 2]),
    ],
)
def test_invalid_bodies_are_rejected_with_plain_text(
    client: TestClient, path: str, body: object
) -> None:
    response = client.post(path, json=body)
    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert client.get("/api/actions/active").json()["count"] == 0


def test_malformed_json_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/actions/cpu-stress",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.text.strip() == "Invalid request body"


def test_unknown_action_id_and_type(client: TestClient) -> None:
    assert client.delete("/api/actions/does-not-exist/stop").status_code == 404
    assert client.post("/api/actions/gpu-melt", json={}).status_code == 404
