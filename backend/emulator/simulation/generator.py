"""Deterministic, bounded field-value generation for a device profile."""

from __future__ import annotations

import hashlib
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Mapping

from ..errors import ConfigurationError, ValidationError
from ..schemas import BoolField, DeviceProfile, EnumField, FloatField, IntField, StringField
from .state import DeviceSimulationState, SimulationContext

logger = logging.getLogger(__name__)

# Categories whose float readings wander from their previous value instead of jumping.
DRIFT_CATEGORIES = frozenset({"temperature", "temperature_humidity", "air_quality"})
DEFAULT_DRIFT_STEP = 2.0
MODES = ("normal", "alarm")


@dataclass(frozen=True)
class GenerationResult:
    fields: dict[str, Any]
    updated_state: DeviceSimulationState
    mode: str = "normal"


def derive_seed(context: SimulationContext, profile_id: str, field_name: str) -> int:
    material = "|".join((*context.seed_parts(), profile_id, field_name))
    h = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return int(h[:16], 16)


def _clip(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _cap_step(prev: float, target: float, cap: float) -> float:
    dv = target - prev
    if dv > cap:
        return prev + cap
    if dv < -cap:
        return prev - cap
    return target


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _int_bounds(spec: IntField) -> tuple[int, int]:
    return math.ceil(spec.min), math.floor(spec.max)


def _finish_numeric(spec: FloatField | IntField, value: float) -> int | float:
    if isinstance(spec, IntField):
        lo, hi = _int_bounds(spec)
        return int(_clip(round(value), lo, hi))
    return _clip(round(value, spec.precision), spec.min, spec.max)


def _drift_step(spec: FloatField | IntField, enable_drift: bool, drift_max_step: float) -> float | None:
    if spec.drift is not None:
        return spec.drift
    if enable_drift and isinstance(spec, FloatField):
        return drift_max_step
    return None


def _numeric_value(
    name: str,
    spec: FloatField | IntField,
    rng: random.Random,
    state: DeviceSimulationState,
    step: float | None,
) -> int | float:
    prev = state.last_values.get(name)
    if step is None or not _is_number(prev):
        if isinstance(spec, IntField):
            lo, hi = _int_bounds(spec)
            return rng.randint(lo, hi)
        return _finish_numeric(spec, rng.uniform(spec.min, spec.max))

    target = rng.uniform(spec.min, spec.max)
    return _finish_numeric(spec, _cap_step(float(prev), target, step))


def _increment_value(spec: FloatField | IntField, counter: int) -> int | float:
    # Saturates at max so the emitted value never decreases nor leaves its bounds.
    if isinstance(spec, IntField):
        lo, hi = _int_bounds(spec)
        return int(_clip(counter, lo, hi))
    return float(_clip(counter, spec.min, spec.max))


def _choose(spec: EnumField, rng: random.Random) -> str:
    if spec.weights:
        return rng.choices(spec.values, weights=spec.weights, k=1)[0]
    return rng.choice(spec.values)


def clamp_value(name: str, spec: Any, value: Any) -> Any:
    if isinstance(spec, (FloatField, IntField)):
        if not _is_number(value):
            raise ValidationError(f"field {name!r} expects a finite number, got {value!r}")
        return _finish_numeric(spec, value)
    if isinstance(spec, EnumField):
        if value not in spec.values:
            raise ValidationError(f"field {name!r} must be one of {spec.values}, got {value!r}")
        return value
    if isinstance(spec, BoolField):
        if not isinstance(value, bool):
            raise ValidationError(f"field {name!r} expects a boolean, got {value!r}")
        return value
    if isinstance(spec, StringField):
        if not isinstance(value, str):
            raise ValidationError(f"field {name!r} expects a string, got {value!r}")
        return value
    raise ConfigurationError(f"field {name!r} has unsupported kind {type(spec).__name__}")


def clamp_fields(fields: Mapping[str, Any], profile: DeviceProfile) -> dict[str, Any]:
    """Clamp declared fields back into their spec. Undeclared keys pass through untouched."""

    result = dict(fields)
    for name, spec in profile.fields.items():
        if name in result:
            result[name] = clamp_value(name, spec, result[name])
    return result


def generate(
    profile: DeviceProfile,
    state: DeviceSimulationState,
    context: SimulationContext,
    mode: str = "normal",
    *,
    enable_drift: bool | None = None,
    drift_max_step: float = DEFAULT_DRIFT_STEP,
    alarm_overrides: Mapping[str, Any] | None = None,
) -> GenerationResult:
    """Produce one emission's field values and the state that follows it.

    Each field draws from its own ``random.Random`` seeded by the whole context plus the
    profile id and field name, so a field's value does not depend on declaration order
    and identical inputs always give identical output. *state* is never mutated.
    """

    if mode not in MODES:
        raise ConfigurationError(f"unknown generation mode {mode!r}")
    if enable_drift is None:
        enable_drift = profile.category in DRIFT_CATEGORIES

    counters = dict(state.counters)
    last_values = dict(state.last_values)
    fields: dict[str, Any] = {}

    for name, spec in profile.fields.items():
        if spec.static:
            fields[name] = spec.default
            continue

        rng = random.Random(derive_seed(context, profile.id, name))
        if isinstance(spec, BoolField):
            fields[name] = rng.random() < spec.true_probability
        elif isinstance(spec, EnumField):
            fields[name] = _choose(spec, rng)
        elif isinstance(spec, StringField):
            fields[name] = spec.default if spec.default is not None else ""
        elif isinstance(spec, (FloatField, IntField)):
            if spec.increment:
                counters[name] = counters.get(name, 0) + 1
                fields[name] = _increment_value(spec, counters[name])
                continue
            step = _drift_step(spec, enable_drift, drift_max_step)
            value = _numeric_value(name, spec, rng, state, step)
            if step is not None:
                last_values[name] = value
            fields[name] = value
        else:
            raise ConfigurationError(f"field {name!r} has unsupported kind {type(spec).__name__}")

    if mode == "alarm":
        overrides = alarm_overrides if alarm_overrides is not None else (profile.examples.alarm or {})
        fields = clamp_fields({**fields, **overrides}, profile)

    updated = state.evolve(
        profile_id=profile.id,
        f_cnt=state.f_cnt + 1,
        emission_sequence=state.emission_sequence + 1,
        counters=counters,
        last_values=last_values,
    )
    return GenerationResult(fields=fields, updated_state=updated, mode=mode)


def verify_determinism(
    profile: DeviceProfile,
    context: SimulationContext,
    iterations: int = 10,
    state: DeviceSimulationState | None = None,
) -> bool:
    """Regenerate *iterations* times from the same inputs and report whether every run matched."""

    base = state or DeviceSimulationState(device_instance_id=context.device_instance_id, profile_id=profile.id)
    first = generate(profile, base, context).fields
    for _ in range(iterations - 1):
        if generate(profile, base, context).fields != first:
            logger.warning("Non-deterministic output for profile %s", profile.id)
            return False
    return True
