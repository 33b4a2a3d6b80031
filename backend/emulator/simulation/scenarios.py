"""Built-in scenarios and alarm triggers, and which devices they apply to."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping

from ..errors import NotFoundError
from ..schemas import DeviceProfile

TEMPERATURE_CATEGORIES = frozenset({"temperature", "temperature_humidity", "multi_sensor", "air_quality"})
DOOR_CATEGORIES = frozenset({"door", "contact", "multi_sensor"})

# Every device supports these regardless of its category or fields.
BASELINE_SCENARIOS = ("normal", "alarm", "low_battery", "poor_signal")


@dataclass(frozen=True)
class SignalOverrides:
    rssi: float | None = None
    snr: float | None = None


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    description: str
    overrides: Mapping[str, Any] = field(default_factory=dict)
    signal_overrides: SignalOverrides | None = None
    categories: frozenset[str] | None = None
    required_fields: frozenset[str] | None = None

    def supports(self, profile: DeviceProfile) -> bool:
        if self.categories is None and self.required_fields is None:
            return True
        if self.categories and profile.category in self.categories:
            return True
        return bool(self.required_fields and self.required_fields & set(profile.fields))


@dataclass(frozen=True)
class AlarmTrigger:
    id: str
    name: str
    description: str
    severity: Literal["warning", "critical"]
    overrides: Mapping[str, Any] = field(default_factory=dict)
    signal_overrides: SignalOverrides | None = None
    # None means the trigger applies to every category.
    categories: frozenset[str] | None = None

    def applies_to(self, profile: DeviceProfile) -> bool:
        return self.categories is None or profile.category in self.categories


def _frozen(mapping: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(mapping)


SCENARIOS: Mapping[str, Scenario] = _frozen({
    s.id: s
    for s in (
        Scenario("normal", "Normal Operation", "Standard sensor readings"),
        Scenario(
            "alarm",
            "Device Alarm",
            "Use the device's example alarm payload as the baseline",
            overrides=_frozen({"alarm": True}),
        ),
        Scenario(
            "temp_excursion",
            "Temperature Excursion",
            "Temperature rising above safe limits",
            overrides=_frozen({"temperature": 75.0, "alarm": True, "alarm_type": "temp_excursion"}),
            categories=TEMPERATURE_CATEGORIES,
            required_fields=frozenset({"temperature"}),
        ),
        Scenario(
            "door_left_open",
            "Door Left Open",
            "Door stuck open with increasing duration",
            overrides=_frozen({
                "door_open": True,
                "open_duration": 3600,
                "alarm": True,
                "alarm_type": "door_timeout",
            }),
            categories=DOOR_CATEGORIES,
        ),
        Scenario(
            "leak",
            "Leak Detected",
            "Water or fluid leak detected",
            overrides=_frozen({"leak_detected": True, "leak_status": 1, "alarm": True}),
            categories=frozenset({"leak"}),
        ),
        Scenario(
            "low_battery",
            "Low Battery",
            "Battery level near minimum",
            overrides=_frozen({"battery": 5, "battery_level": 5, "battery_low": True}),
        ),
        Scenario(
            "poor_signal",
            "Poor Signal",
            "Weak gateway connection",
            signal_overrides=SignalOverrides(rssi=-110, snr=-3),
        ),
    )
})


ALARM_TRIGGERS: Mapping[str, AlarmTrigger] = _frozen({
    t.id: t
    for t in (
        AlarmTrigger(
            "temp_high",
            "High Temperature",
            "Temperature exceeds safe threshold",
            "critical",
            overrides=_frozen({"temperature": 85.0, "alarm": True, "alarm_type": "high_temp"}),
            categories=TEMPERATURE_CATEGORIES,
        ),
        AlarmTrigger(
            "temp_low",
            "Low Temperature",
            "Temperature below freezing threshold",
            "warning",
            overrides=_frozen({"temperature": -25.0, "alarm": True, "alarm_type": "low_temp"}),
            categories=TEMPERATURE_CATEGORIES,
        ),
        AlarmTrigger(
            "door_stuck_open",
            "Door Stuck Open",
            "Door has been open too long",
            "warning",
            overrides=_frozen({
                "door_open": True,
                "open_duration": 3600,
                "alarm": True,
                "alarm_type": "door_open_timeout",
            }),
            categories=DOOR_CATEGORIES,
        ),
        AlarmTrigger(
            "leak_detected",
            "Leak Detected",
            "Water or fluid leak detected",
            "critical",
            overrides=_frozen({"leak_detected": True, "leak_status": 1, "alarm": True, "alarm_type": "leak"}),
            categories=frozenset({"leak"}),
        ),
        AlarmTrigger(
            "co2_high",
            "High CO2",
            "CO2 level exceeds safe limit",
            "warning",
            overrides=_frozen({"co2": 2500, "alarm": True, "alarm_type": "high_co2"}),
            categories=frozenset({"co2", "air_quality"}),
        ),
        AlarmTrigger(
            "low_battery",
            "Low Battery",
            "Battery level critically low",
            "warning",
            overrides=_frozen({
                "battery": 5,
                "battery_level": 5,
                "battery_low": True,
                "battery_status": "critical",
            }),
        ),
        AlarmTrigger(
            "poor_signal",
            "Poor Signal",
            "Weak gateway connection",
            "warning",
            signal_overrides=SignalOverrides(rssi=-115, snr=-5),
        ),
        AlarmTrigger(
            "motion_detected",
            "Motion Detected",
            "Movement detected in monitored area",
            "warning",
            overrides=_frozen({"motion": True, "motion_count": 1, "occupancy": True}),
            categories=frozenset({"motion"}),
        ),
        AlarmTrigger(
            "tamper_alert",
            "Tamper Alert",
            "Device has been tampered with",
            "critical",
            overrides=_frozen({"tamper": True, "alarm": True, "alarm_type": "tamper"}),
        ),
    )
})


def get_scenario(scenario_id: str) -> Scenario:
    try:
        return SCENARIOS[scenario_id]
    except KeyError:
        raise NotFoundError("scenario", scenario_id) from None


def get_alarm_trigger(trigger_id: str) -> AlarmTrigger:
    try:
        return ALARM_TRIGGERS[trigger_id]
    except KeyError:
        raise NotFoundError("alarm trigger", trigger_id) from None


def device_supports_scenario(profile: DeviceProfile, scenario_id: str) -> bool:
    scenario = SCENARIOS.get(scenario_id)
    if scenario is None:
        return False
    return scenario_id in BASELINE_SCENARIOS or scenario.supports(profile)


def get_device_scenarios(profile: DeviceProfile) -> list[Scenario]:
    return [s for s in SCENARIOS.values() if device_supports_scenario(profile, s.id)]


def get_device_alarms(profile: DeviceProfile) -> list[AlarmTrigger]:
    return [t for t in ALARM_TRIGGERS.values() if t.applies_to(profile)]
