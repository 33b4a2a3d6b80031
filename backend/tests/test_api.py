import asyncio

import pytest
from fastapi.testclient import TestClient

from emulator.db import get_db
from emulator.deps import get_manager
from emulator.main import app
from emulator.manager import EmulationManager
from emulator.simulation.envelope import normalize_dev_eui
from emulator.simulation.payload_codec import decode_frm_payload
from emulator.simulation.scheduler import EmissionScheduler
from emulator.simulation.state_store import DeviceStateStore
from emulator.sinks import MemorySink

# Every device disabled so no timers outlive the test client's event loop.
FLEET = {
    "application_id": "freshtrack-test",
    "gateways": [{"id": "gw-hall", "eui": "AC1F09FFFE01A2B3"}],
    "devices": [
        {
            "id": "cooler-temp",
            "dev_eui": "a8:40:41:00:01:81:c2:d1",
            "profile_id": "milesight-em300-th",
            "enabled": False,
        },
        {
            "id": "cooler-door",
            "dev_eui": "A84041000181C2D2",
            "profile_id": "dragino-lds02",
            "enabled": False,
        },
    ],
}


@pytest.fixture
def manager(library):
    manager = EmulationManager(
        library=library,
        store=DeviceStateStore(),
        scheduler=EmissionScheduler(),
        sink=MemorySink(),
        application_id="default-app",
        default_interval=60,
    )
    asyncio.run(manager.apply_config(FLEET))
    return manager


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json() == {"ok": True, "active_devices": 0}


def test_library_endpoints(client):
    devices = client.get("/library/devices", params={"category": "door"}).json()
    assert devices and all(d["category"] == "door" for d in devices)

    profile = client.get("/library/devices/milesight-em300-th").json()
    assert profile["default_fport"] == 85
    assert "temperature" in profile["simulation_profile"]["fields"]

    scenarios = {s["id"] for s in client.get("/library/devices/dragino-lds02/scenarios").json()}
    assert {"normal", "alarm", "low_battery", "poor_signal", "door_left_open"} <= scenarios

    alarms = client.get("/library/alarms").json()
    poor = next(a for a in alarms if a["id"] == "poor_signal")
    assert (poor["rssi"], poor["snr"]) == (-115, -5)
    assert poor["categories"] is None

    meta = client.get("/library/categories").json()
    assert "leak" in meta["categories"]
    assert len(client.get("/library/scenarios").json()) == 7

    missing = client.get("/library/devices/no-such-device")
    assert missing.status_code == 404
    assert missing.json()["error"] == "NotFoundError"


def test_emit_returns_envelope_and_delivers(client, manager):
    r = client.post("/emulator/devices/cooler-temp/emit", json={"scenario": "temp_excursion"})

    assert r.status_code == 200
    body = r.json()
    assert body["delivered"] is True
    envelope = body["envelope"]
    assert envelope["end_device_ids"]["dev_eui"] == "A84041000181C2D1"
    assert envelope["end_device_ids"]["application_ids"]["application_id"] == "freshtrack-test"
    assert envelope["uplink_message"]["f_cnt"] == 1
    assert envelope["uplink_message"]["decoded_payload"]["temperature"] == 75.0
    assert decode_frm_payload(envelope["uplink_message"]["frm_payload"]) == envelope["uplink_message"]["decoded_payload"]
    assert len(manager.sink.delivered) == 1


def test_emit_without_body_or_delivery(client, manager):
    first = client.post("/emulator/devices/cooler-door/emit")
    second = client.post("/emulator/devices/cooler-door/emit", json={"trigger": "door_stuck_open", "deliver": False})

    assert first.status_code == 200 and second.status_code == 200
    assert second.json()["delivered"] is None
    assert second.json()["envelope"]["uplink_message"]["f_cnt"] == 2
    assert second.json()["envelope"]["uplink_message"]["decoded_payload"]["door_open"] is True
    assert len(manager.sink.delivered) == 1


def test_emit_errors_map_to_status_codes(client):
    assert client.post("/emulator/devices/ghost/emit").status_code == 404
    assert client.post("/emulator/devices/cooler-temp/emit", json={"scenario": "leak"}).status_code == 422
    assert client.post("/emulator/devices/cooler-temp/emit", json={"alarm": "meteor"}).status_code == 404


def test_state_inspection_and_reset(client):
    assert client.get("/emulator/devices/cooler-temp/state").json() is None
    client.post("/emulator/devices/cooler-temp/emit", json={"deliver": False})

    state = client.get("/emulator/devices/cooler-temp/state").json()
    assert state["f_cnt"] == 1 and state["profile_id"] == "milesight-em300-th"

    assert client.delete("/emulator/devices/cooler-temp/state").json() == {"device_id": "cooler-temp", "reset": True}
    assert client.get("/emulator/devices/cooler-temp/state").json() is None


def test_status_and_device_listing(client):
    status = client.get("/emulator/status").json()
    assert status["application_id"] == "freshtrack-test"
    assert status["scheduler"]["active_devices"] == 0

    devices = client.get("/emulator/devices").json()
    assert [d["id"] for d in devices] == ["cooler-temp", "cooler-door"]
    assert devices[0]["dev_eui"] == normalize_dev_eui(FLEET["devices"][0]["dev_eui"])

    assert client.get("/emulator/devices/ghost").status_code == 404
    assert client.post("/emulator/devices/cooler-temp/stop").json() == {"device_id": "cooler-temp", "stopped": False}
    assert client.post("/emulator/stop-all").json() == {"stopped": 0}


def test_config_rejects_unknown_profile(client):
    bad = {"devices": [{"id": "x", "dev_eui": "0000000000000001", "profile_id": "nope"}]}

    r = client.post("/emulator/config", json=bad)

    assert r.status_code == 422
    assert "nope" in r.json()["detail"]


class DummySession:
    def __init__(self):
        self.executed = []
        self.commits = 0

    async def execute(self, stmt):
        self.executed.append(stmt)

    async def commit(self):
        self.commits += 1


def test_reset_removes_the_persisted_snapshot(client):
    session = DummySession()

    async def snapshot_db():
        yield session

    app.dependency_overrides[get_db] = snapshot_db
    client.post("/emulator/devices/cooler-temp/emit", json={"deliver": False})

    r = client.delete("/emulator/devices/cooler-temp/state")

    assert r.json() == {"device_id": "cooler-temp", "reset": True}
    assert session.commits == 1
    sql = str(session.executed[0])
    assert "DELETE FROM device_sim_states" in sql
    assert client.delete("/emulator/devices/ghost/state").status_code == 404
    assert session.commits == 1
