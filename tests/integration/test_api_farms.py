from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from autofarm.api.routes.farms import get_registry
from autofarm.app.main import create_app
from autofarm.core.engine.timing import EngineSettings
from autofarm.core.run.registry import FarmRegistry
from autofarm.storage.stats_store import AllTimeStatsStore


def _app(tmp_path, service) -> tuple[FastAPI, FarmRegistry]:
    app = create_app()
    registry = FarmRegistry(
        service_factory=lambda: service,
        store=AllTimeStatsStore(path=tmp_path / "stats.json"),
        engine_settings=EngineSettings(grid_width=3, grid_height=3),
    )
    app.dependency_overrides[get_registry] = lambda: registry
    return app, registry


def _create(client: TestClient, actor_id: str = "commander", **config) -> dict:
    r = client.post("/api/farms", json={"actor_id": actor_id, "start": {"x": 1, "y": 1}, "config": config})
    assert r.status_code == 201, r.text
    return r.json()


def test_health(tmp_path, service) -> None:
    app, _ = _app(tmp_path, service)
    client = TestClient(app)

    r = client.get("/api/health")

    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["farms"] == 0

    _create(client)
    assert client.get("/api/health").json()["farms"] == 1


def test_create_and_get_farm(tmp_path, service) -> None:
    app, _ = _app(tmp_path, service)
    client = TestClient(app)

    body = _create(client, vip=True)
    assert body["actor_id"] == "commander"
    assert body["timing"] == "vip"
    assert body["state"]["status"] == "stopped"
    assert body["state"]["position"] == {"x": 1, "y": 1}
    assert body["stats"]["tiles_visited"] == 0

    r = client.get("/api/farms/commander")
    assert r.status_code == 200
    assert r.json()["config"]["vip"] is True

    listed = client.get("/api/farms").json()["farms"]
    assert [f["actor_id"] for f in listed] == ["commander"]


def test_create_errors(tmp_path, service) -> None:
    app, _ = _app(tmp_path, service)
    client = TestClient(app)
    _create(client)

    dup = client.post("/api/farms", json={"actor_id": "commander", "start": {"x": 1, "y": 1}})
    assert dup.status_code == 409

    off_grid = client.post("/api/farms", json={"actor_id": "other", "start": {"x": 9, "y": 1}})
    assert off_grid.status_code == 422

    assert client.get("/api/farms/nobody").status_code == 404
    assert client.post("/api/farms/nobody/start").status_code == 404


def test_patch_config_while_stopped(tmp_path, service) -> None:
    app, _ = _app(tmp_path, service)
    client = TestClient(app)
    _create(client)

    r = client.patch("/api/farms/commander/config", json={"attack_players": True, "rank_filter": "lower"})
    assert r.status_code == 200
    assert r.json()["config"]["attack_players"] is True
    assert r.json()["config"]["rank_filter"] == "lower"

    bad = client.patch("/api/farms/commander/config", json={"turbo": True})
    assert bad.status_code == 422


def test_lifecycle_flush_and_delete(tmp_path, service) -> None:
    app, registry = _app(tmp_path, service)

    with TestClient(app) as client:
        _create(client, vip=True)

        started = client.post("/api/farms/commander/start")
        assert started.status_code == 200
        assert started.json()["state"]["status"] == "active"

        busy = client.post("/api/farms/commander/stats/flush")
        assert busy.status_code == 409

        paused = client.post("/api/farms/commander/pause")
        assert paused.json()["state"]["status"] == "paused"

        locked = client.patch("/api/farms/commander/config", json={"attack_players": True})
        assert locked.status_code == 409

        stopped = client.post("/api/farms/commander/stop")
        assert stopped.status_code == 200
        assert stopped.json()["final_stats"] is not None

        again = client.post("/api/farms/commander/stop")
        assert again.json()["final_stats"] is None

        flushed = client.post("/api/farms/commander/stats/flush")
        assert flushed.status_code == 200
        assert flushed.json()["totals"]["total_sessions_completed"] == 1
        assert flushed.json()["summary"].startswith("1 sessions")

        alltime = client.get("/api/farms/commander/stats/alltime").json()
        assert alltime["totals"]["total_sessions_completed"] == 1

        assert registry.store.load("commander").total_sessions_completed == 1

        deleted = client.delete("/api/farms/commander")
        assert deleted.status_code == 204
        assert client.get("/api/farms/commander").status_code == 404
