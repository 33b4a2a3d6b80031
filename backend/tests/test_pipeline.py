from datetime import datetime, timezone

import pytest

from emulator.errors import NotFoundError, ValidationError
from emulator.schemas import EmulatedDevice
from emulator.simulation.payload_codec import decode_frm_payload
from emulator.simulation.pipeline import emit_uplink
from emulator.simulation.state_store import DeviceStateStore

WHEN = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def test_every_library_device_emits_valid_uplinks(library, gateway):
    store = DeviceStateStore()
    for n, profile in enumerate(library.list_devices()):
        device = EmulatedDevice(id=f"inst-{profile.id}", dev_eui=f"{n:016X}", profile_id=profile.id)
        for expected in range(1, 6):
            envelope = emit_uplink(device, profile, store, gateways=[gateway], application_id="app", received_at=WHEN)
            uplink = envelope.uplink_message
            assert uplink.f_cnt == expected
            assert uplink.f_port == profile.default_fport
            assert set(profile.fields) <= set(uplink.decoded_payload)
            assert decode_frm_payload(uplink.frm_payload) == uplink.decoded_payload

        alarm = emit_uplink(device, profile, store, gateways=[gateway], application_id="app", scenario_id="alarm")
        assert alarm.uplink_message.f_cnt == 6
        assert alarm.uplink_message.decoded_payload["alarm"] is True
        assert store.get(device.id).last_emitted_at == alarm.received_at


def test_same_context_reproduces_the_same_uplink(em300, device, gateway):
    first = [
        emit_uplink(device, em300, DeviceStateStore(), gateways=[gateway], application_id="app", received_at=WHEN)
        for _ in range(2)
    ]

    assert first[0] == first[1]


def test_counters_persist_across_emissions(library, gateway):
    profile = library.get_device("tektelic-kona-pulse")
    device = EmulatedDevice(id="meter-1", dev_eui="647FDA0000001234", profile_id=profile.id)
    store = DeviceStateStore()

    counts = [
        emit_uplink(device, profile, store, gateways=[gateway], application_id="app").uplink_message.decoded_payload[
            "pulse_count"
        ]
        for _ in range(4)
    ]

    assert counts == [1, 2, 3, 4]
    assert store.get_counter("meter-1", "pulse_count") == 4


def test_failures_do_not_advance_state(em300, device, gateway):
    store = DeviceStateStore()
    emit_uplink(device, em300, store, gateways=[gateway], application_id="app")

    with pytest.raises(ValidationError):
        emit_uplink(device, em300, store, gateways=[], application_id="app")
    with pytest.raises(NotFoundError):
        emit_uplink(device, em300, store, gateways=[gateway], application_id="app", alarm_id="meteor")
    with pytest.raises(ValidationError):
        emit_uplink(device, em300, store, gateways=[gateway], application_id="app", scenario_id="a", alarm_id="b")

    assert store.get(device.id).f_cnt == 1
