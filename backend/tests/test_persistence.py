import asyncio

from sqlalchemy.dialects import postgresql

from emulator.models import DeviceStateRecord
from emulator.persistence import (
    delete_state_snapshot,
    load_state_snapshots,
    restore_store,
    save_state_snapshots,
)
from emulator.simulation.state import DeviceSimulationState
from emulator.simulation.state_store import DeviceStateStore


class DummyResult:
    def __init__(self, records):
        self._records = records

    def scalars(self):
        return iter(self._records)


class DummySession:
    def __init__(self, records=()):
        self.records = list(records)
        self.executed = []
        self.commits = 0

    async def execute(self, stmt):
        self.executed.append(stmt)
        return DummyResult(self.records)

    async def commit(self):
        self.commits += 1


def _record(device_instance_id, f_cnt):
    return DeviceStateRecord(
        device_instance_id=device_instance_id,
        profile_id="dragino-lds02",
        f_cnt=f_cnt,
        emission_sequence=f_cnt,
        counters={"open_count": f_cnt},
        last_values={},
        last_emitted_at="2026-03-01T12:00:00.000Z",
        created_at="2026-03-01T11:00:00+00:00",
    )


def test_save_upserts_every_state():
    session = DummySession()
    states = [
        DeviceSimulationState(device_instance_id="dev-a", f_cnt=3, emission_sequence=3, counters={"hits": 3}),
        DeviceSimulationState(device_instance_id="dev-b", f_cnt=9, emission_sequence=9),
    ]

    assert asyncio.run(save_state_snapshots(session, states)) == 2
    assert session.commits == 1

    sql = str(session.executed[0].compile(dialect=postgresql.dialect()))
    assert "INSERT INTO device_sim_states" in sql
    assert "ON CONFLICT (device_instance_id) DO UPDATE" in sql
    assert "saved_at" in sql


def test_save_without_states_is_a_no_op():
    session = DummySession()

    assert asyncio.run(save_state_snapshots(session, [])) == 0
    assert session.executed == [] and session.commits == 0


def test_load_and_restore_into_a_store():
    session = DummySession([_record("dev-a", 4), _record("dev-b", 11)])
    store = DeviceStateStore()

    states = asyncio.run(load_state_snapshots(session))
    assert [(s.device_instance_id, s.f_cnt) for s in states] == [("dev-a", 4), ("dev-b", 11)]
    assert states[1].counters == {"open_count": 11}

    assert asyncio.run(restore_store(session, store)) == 2
    assert store.increment_f_cnt("dev-b") == 12
    assert store.get("dev-a").created_at == "2026-03-01T11:00:00+00:00"


def test_delete_commits():
    session = DummySession()

    asyncio.run(delete_state_snapshot(session, "dev-a"))

    assert session.commits == 1
    assert "DELETE FROM device_sim_states" in str(session.executed[0])
