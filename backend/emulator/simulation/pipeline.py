"""One emission for one device: state in, envelope out, state committed last."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from ..errors import ValidationError
from ..schemas import DeviceProfile, EmulatedDevice, Envelope, GatewayConfig
from .composer import compose, compose_alarm_payload
from .envelope import build_envelope, envelope_log_data
from .generator import generate
from .state import SimulationContext
from .state_store import DeviceStateStore

logger = logging.getLogger(__name__)


def emit_uplink(
    device: EmulatedDevice,
    profile: DeviceProfile,
    store: DeviceStateStore,
    *,
    gateways: Sequence[GatewayConfig],
    application_id: str,
    scenario_id: str | None = None,
    alarm_id: str | None = None,
    received_at: datetime | None = None,
) -> Envelope:
    """Generate (or compose) one uplink for *device* and advance its stored state.

    The stored record is only replaced once the envelope has been built, so a failure
    at any step leaves the device's counters exactly as they were.
    """

    if scenario_id and alarm_id:
        raise ValidationError("pass either a scenario or an alarm trigger, not both")

    received_at = received_at or datetime.now(timezone.utc)
    with store.lock(device.id):
        state = store.get_or_create(device.id, profile.id)
        context = SimulationContext(
            org_id=device.org_id,
            site_id=device.site_id,
            unit_id=device.unit_id,
            device_instance_id=device.id,
            emission_sequence=state.emission_sequence + 1,
        )

        signal_overrides = None
        if alarm_id:
            result = compose_alarm_payload(profile, alarm_id, state, context)
            fields, updated, signal_overrides = result.fields, result.updated_state, result.signal_overrides
        elif scenario_id and scenario_id != "normal":
            result = compose(profile, scenario_id, state, context)
            fields, updated, signal_overrides = result.fields, result.updated_state, result.signal_overrides
        else:
            generated = generate(profile, state, context)
            fields, updated = generated.fields, generated.updated_state

        envelope = build_envelope(
            device,
            gateways,
            fields,
            profile,
            updated,
            application_id,
            signal_overrides=signal_overrides,
            received_at=received_at,
        )
        store.update(updated.evolve(last_emitted_at=envelope.received_at))

    logger.debug("Built uplink", extra=envelope_log_data(envelope))
    return envelope
