import asyncio

import pytest

from emulator.errors import ValidationError
from emulator.schemas import EmulatedDevice
from emulator.simulation.pipeline import emit_uplink
from emulator.simulation.scheduler import EmissionScheduler
from emulator.simulation.state_store import DeviceStateStore


def _scheduler(clock):
    return EmissionScheduler(clock=clock.time, sleep=clock.sleep)


def test_twelve_devices_emit_independently(clock, em300, gateway):
    store = DeviceStateStore()
    devices = {
        f"dev-{i:02d}": EmulatedDevice(
            id=f"dev-{i:02d}", dev_eui=f"A8404100018100{i:02X}", profile_id=em300.id, org_id="org-1"
        )
        for i in range(12)
    }
    sent = {device_id: [] for device_id in devices}

    def emit(device_id):
        envelope = emit_uplink(
            devices[device_id], em300, store, gateways=[gateway], application_id="app"
        )
        sent[device_id].append(envelope)

    async def scenario():
        scheduler = _scheduler(clock)
        for device_id in devices:
            scheduler.start_device(device_id, 5, emit)
        await clock.advance(60)
        await scheduler.shutdown()
        return scheduler

    scheduler = asyncio.run(scenario())

    for device_id, envelopes in sent.items():
        assert len(envelopes) >= 11
        f_cnts = [e.uplink_message.f_cnt for e in envelopes]
        assert f_cnts == list(range(1, len(envelopes) + 1))
        expected_eui = devices[device_id].dev_eui
        assert {e.end_device_ids.dev_eui for e in envelopes} == {expected_eui}
        assert scheduler.get_status(device_id).emission_count == len(envelopes)
    assert scheduler.active_count == 0


def test_emission_counts_follow_the_interval(clock):
    counts = {"fast": 0, "slow": 0}

    def emit(device_id):
        counts[device_id] += 1

    async def scenario():
        scheduler = _scheduler(clock)
        scheduler.start_device("fast", 5, emit)
        scheduler.start_device("slow", 10, emit)
        await clock.advance(60)
        scheduler.stop_all()

    asyncio.run(scenario())

    assert counts == {"fast": 12, "slow": 6}


def test_emit_immediately_fires_before_the_first_interval(clock):
    fired = []

    async def scenario():
        scheduler = _scheduler(clock)
        scheduler.start_device("dev", 30, fired.append, emit_immediately=True)
        await clock.settle()
        assert fired == ["dev"]
        await clock.advance(30)
        scheduler.stop_all()

    asyncio.run(scenario())

    assert fired == ["dev", "dev"]


def test_async_callbacks_are_awaited(clock):
    fired = []

    async def emit(device_id):
        fired.append(device_id)

    async def scenario():
        scheduler = _scheduler(clock)
        scheduler.start_device("dev", 10, emit)
        await clock.advance(30)
        await scheduler.shutdown()

    asyncio.run(scenario())

    assert fired == ["dev"] * 3


def test_failures_are_counted_and_do_not_stop_the_timer(clock):
    fired = {"bad": 0, "good": 0}

    def emit(device_id):
        fired[device_id] += 1
        if device_id == "bad":
            raise RuntimeError("webhook exploded")

    async def scenario():
        scheduler = _scheduler(clock)
        scheduler.start_device("bad", 5, emit)
        scheduler.start_device("good", 5, emit)
        await clock.advance(20)
        scheduler.stop_all()
        return scheduler

    scheduler = asyncio.run(scenario())

    bad = scheduler.get_status("bad")
    assert fired == {"bad": 4, "good": 4}
    assert bad.errors == 4 and bad.emission_count == 0
    assert "webhook exploded" in bad.last_error
    assert scheduler.get_status("good").errors == 0
    assert scheduler.total_errors == 4


def test_stop_all_halts_every_timer(clock):
    fired = []

    async def scenario():
        scheduler = _scheduler(clock)
        for device_id in ("a", "b", "c"):
            scheduler.start_device(device_id, 5, fired.append)
        await clock.advance(5)
        assert scheduler.stop_all() == 3
        await clock.advance(60)
        return scheduler

    scheduler = asyncio.run(scenario())

    assert sorted(fired) == ["a", "b", "c"]
    assert scheduler.active_count == 0
    assert scheduler.stop_device("a") is False


def test_restart_replaces_the_previous_timer(clock):
    fired = []

    async def scenario():
        scheduler = _scheduler(clock)
        scheduler.start_device("dev", 5, fired.append)
        scheduler.start_device("dev", 20, fired.append)
        await clock.advance(40)
        status = scheduler.get_status("dev")
        assert status.is_running and status.interval_seconds == 20
        assert scheduler.update_interval("dev", 10) is True
        await clock.advance(20)
        scheduler.stop_all()

    asyncio.run(scenario())

    assert len(fired) == 4


def test_non_positive_interval_is_rejected(clock):
    async def scenario():
        scheduler = _scheduler(clock)
        for interval in (0, -5):
            with pytest.raises(ValidationError):
                scheduler.start_device("dev", interval, lambda _: None)
        assert not scheduler.is_running("dev")

    asyncio.run(scenario())


def test_status_summary(clock):
    async def scenario():
        scheduler = _scheduler(clock)
        scheduler.start_device("dev", 5, lambda _: None)
        await clock.advance(10)
        summary = scheduler.summary()
        scheduler.stop_all()
        return summary

    summary = asyncio.run(scenario())

    assert summary["active_devices"] == 1
    assert summary["total_emissions"] == 2
    assert summary["devices"][0]["last_emitted_at"].startswith("2023-11-14T")
