"""Tests for the HTTP API."""

import asyncio
from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from wellmonitor.api import routes
from wellmonitor.core.timeutil import now_utc
from wellmonitor.domain.config_snapshot import ConfigSnapshot
from wellmonitor.domain.models import ActionKind, ActionOutcome, PumpState, Reading, RelayAction
from wellmonitor.domain.safety import SafetyCycleController
from wellmonitor.drivers.actuators_sim import SimulatedRelayActuator
from wellmonitor.drivers.image_sim import FileImageSource
from wellmonitor.extraction.orchestrator import ExtractionOrchestrator
from wellmonitor.services.config_store import ConfigStore
from wellmonitor.services.monitor import MonitoringLoop
from wellmonitor.storage.sqlite_repo import SQLiteRepository


class StubProvider:
    name = "tesseract"
    is_available = True

    async def initialize(self):
        return True

    async def extract(self, image):
        raise NotImplementedError

    async def close(self):
        pass


@pytest.fixture
def env(tmp_path):
    store = ConfigStore(ConfigSnapshot())
    controller = SafetyCycleController(SimulatedRelayActuator())
    orchestrator = ExtractionOrchestrator([StubProvider()])
    repo = SQLiteRepository(str(tmp_path / "api.db"))
    asyncio.run(repo.init())
    monitor = MonitoringLoop(FileImageSource(tmp_path / "frame.jpg"), orchestrator, controller, repo, store)

    app = FastAPI()
    app.dependency_overrides[routes.get_monitor] = lambda: monitor
    app.dependency_overrides[routes.get_controller] = lambda: controller
    app.dependency_overrides[routes.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[routes.get_config_store] = lambda: store
    app.dependency_overrides[routes.get_repo] = lambda: repo
    app.include_router(routes.router, prefix="/api")
    return TestClient(app), store, monitor, repo


def test_status(env):
    """Test the status document before the first cycle."""
    client, _, _, _ = env
    body = client.get("/api/status").json()

    assert body["last_reading"] is None
    assert body["config_version"] == 1
    assert body["controller"]["phase"] == "Armed"
    assert body["controller"]["cycles_24h"] == 0
    assert body["fatal_error"] is None


def test_status_with_reading(env):
    """Test the last reading is reported with its status string."""
    client, _, monitor, _ = env
    monitor.live.last_reading = Reading(now_utc(), 4.2, PumpState.NORMAL, "4.2A", 0.93, "tesseract", timedelta(milliseconds=80))

    body = client.get("/api/status").json()

    assert body["last_reading"]["status"] == "Normal"
    assert body["last_reading"]["current_amps"] == 4.2
    assert body["last_reading"]["duration_ms"] == 80.0


def test_providers_follow_priority(env):
    """Test providers are listed in priority order with registration state."""
    client, _, _, _ = env
    providers = client.get("/api/providers").json()["providers"]

    assert [p["name"] for p in providers] == ["tesseract", "python_bridge", "azure_vision"]
    assert providers[0]["registered"] and providers[0]["available"]
    assert not providers[1]["registered"]


def test_get_config(env):
    """Test the snapshot is served as JSON."""
    client, _, _, _ = env
    body = client.get("/api/config").json()

    assert body["version"] == 1
    assert body["roi"] == {"x": 0.25, "y": 0.4, "width": 0.5, "height": 0.2}
    assert body["provider_priority"] == ["tesseract", "python_bridge", "azure_vision"]


def test_put_config_publishes(env):
    """Test a valid update bumps the version."""
    client, store, _, _ = env
    resp = client.put("/api/config", json={"updates": {"max_daily_cycles": 4, "minimum_confidence": 0.6}})

    assert resp.status_code == 200
    assert resp.json()["version"] == 2
    assert store.current().max_daily_cycles == 4


def test_put_invalid_config_is_rejected(env):
    """Test an invalid update answers 400 and keeps the old snapshot."""
    client, store, _, _ = env
    before = store.current()

    resp = client.put("/api/config", json={"updates": {"roi": {"x": 0.9, "y": 0.4, "width": 0.5, "height": 0.2}}})

    assert resp.status_code == 400
    assert store.current() is before


def test_put_empty_update_is_rejected(env):
    """Test an empty update is a validation error."""
    client, _, _, _ = env
    assert client.put("/api/config", json={"updates": {}}).status_code == 422


def test_readings_and_actions(env):
    """Test history endpoints return stored rows."""
    client, _, _, repo = env
    ts = now_utc() - timedelta(minutes=5)
    action = RelayAction(ts, ActionKind.POWER_CYCLE, "RapidCycle detected", ActionOutcome.COMPLETED)
    asyncio.run(repo.append(Reading(ts, None, PumpState.RAPID_CYCLE, "rcyc", 0.88, "tesseract", timedelta(0)), action))

    readings = client.get("/api/readings", params={"minutes": 30}).json()["rows"]
    actions = client.get("/api/actions", params={"minutes": 30}).json()["rows"]

    assert [r["status"] for r in readings] == ["RapidCycle"]
    assert actions == [{
        "ts_utc": ts.isoformat(),
        "kind": "PowerCycle",
        "reason": "RapidCycle detected",
        "outcome": "Completed",
    }]
