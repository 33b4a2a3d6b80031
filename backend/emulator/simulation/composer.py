"""Overlay scenario and alarm-trigger overrides on generated baseline fields."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..errors import NotFoundError, ValidationError
from ..schemas import DeviceProfile
from .generator import DEFAULT_DRIFT_STEP, clamp_fields, generate
from .scenarios import (
    ALARM_TRIGGERS,
    SCENARIOS,
    AlarmTrigger,
    Scenario,
    SignalOverrides,
    device_supports_scenario,
    get_alarm_trigger,
    get_scenario,
)
from .state import DeviceSimulationState, SimulationContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositionResult:
    fields: dict[str, Any]
    updated_state: DeviceSimulationState
    scenario: Scenario | None = None
    alarm: AlarmTrigger | None = None

    @property
    def signal_overrides(self) -> SignalOverrides | None:
        if self.alarm is not None:
            return self.alarm.signal_overrides
        if self.scenario is not None:
            return self.scenario.signal_overrides
        return None


def merge_layers(layers: Iterable[Mapping[str, Any] | None]) -> dict[str, Any]:
    """Merge partial field maps left to right; later layers win key by key."""

    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def compose_scenario_payload(
    profile: DeviceProfile,
    scenario_id: str,
    state: DeviceSimulationState,
    context: SimulationContext,
    *,
    enable_drift: bool | None = None,
    drift_max_step: float = DEFAULT_DRIFT_STEP,
) -> CompositionResult:
    scenario = get_scenario(scenario_id)
    if not device_supports_scenario(profile, scenario_id):
        raise ValidationError(f"device {profile.id!r} does not support scenario {scenario_id!r}")

    baseline = generate(
        profile, state, context, enable_drift=enable_drift, drift_max_step=drift_max_step
    )
    example = profile.examples.alarm if scenario.id == "alarm" else None
    fields = clamp_fields(merge_layers([baseline.fields, scenario.overrides, example]), profile)
    return CompositionResult(fields=fields, updated_state=baseline.updated_state, scenario=scenario)


def compose_alarm_payload(
    profile: DeviceProfile,
    trigger_id: str,
    state: DeviceSimulationState,
    context: SimulationContext,
    *,
    enable_drift: bool | None = None,
    drift_max_step: float = DEFAULT_DRIFT_STEP,
) -> CompositionResult:
    trigger = get_alarm_trigger(trigger_id)
    if not trigger.applies_to(profile):
        logger.warning(
            "Alarm trigger %s does not apply to category %s (device %s)",
            trigger_id,
            profile.category,
            profile.id,
        )

    baseline = generate(
        profile, state, context, enable_drift=enable_drift, drift_max_step=drift_max_step
    )
    layers = [baseline.fields, profile.examples.alarm, trigger.overrides]
    fields = clamp_fields(merge_layers(layers), profile)
    return CompositionResult(fields=fields, updated_state=baseline.updated_state, alarm=trigger)


def compose(
    profile: DeviceProfile,
    scenario_or_alarm_id: str,
    state: DeviceSimulationState,
    context: SimulationContext,
    **options: Any,
) -> CompositionResult:
    """Resolve *scenario_or_alarm_id* against scenarios first, then alarm triggers."""

    if scenario_or_alarm_id in SCENARIOS:
        return compose_scenario_payload(profile, scenario_or_alarm_id, state, context, **options)
    if scenario_or_alarm_id in ALARM_TRIGGERS:
        return compose_alarm_payload(profile, scenario_or_alarm_id, state, context, **options)
    raise NotFoundError("scenario or alarm trigger", scenario_or_alarm_id)
