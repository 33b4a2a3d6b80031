import math
from dataclasses import replace

import pytest

from conftest import make_context, make_profile
from emulator.errors import ConfigurationError, ValidationError
from emulator.schemas import EnumField, FloatField, IntField
from emulator.simulation.generator import clamp_fields, generate, verify_determinism
from emulator.simulation.state import DeviceSimulationState


def test_generate_is_deterministic_for_identical_inputs(mixed_profile, fresh_state):
    context = make_context(seq=7)
    first = generate(mixed_profile, fresh_state, context).fields

    for _ in range(100):
        assert generate(mixed_profile, fresh_state, context).fields == first


@pytest.mark.parametrize(
    "attribute, value",
    [
        ("org_id", "org-2"),
        ("site_id", "site-2"),
        ("unit_id", "unit-2"),
        ("device_instance_id", "dev-2"),
        ("emission_sequence", 2),
    ],
)
def test_changing_any_context_attribute_changes_output(mixed_profile, fresh_state, attribute, value):
    base = make_context(seq=1)
    changed = replace(base, **{attribute: value})

    assert generate(mixed_profile, fresh_state, base).fields != generate(mixed_profile, fresh_state, changed).fields


def test_frame_counter_starts_at_one_and_increases(mixed_profile, fresh_state):
    state = fresh_state
    seen = []
    for seq in range(1, 21):
        state = generate(mixed_profile, state, make_context(seq=seq)).updated_state
        seen.append(state.f_cnt)

    assert seen == list(range(1, 21))
    assert state.emission_sequence == 20


def test_input_state_is_not_mutated(mixed_profile):
    state = DeviceSimulationState(device_instance_id="dev-1", counters={"ticks": 4})
    result = generate(mixed_profile, state, make_context())

    assert state.counters == {"ticks": 4}
    assert state.f_cnt == 0
    assert result.updated_state.counters["ticks"] == 5
    assert result.fields["ticks"] == 5


def test_values_respect_their_specs_across_the_library(library):
    for profile in library.list_devices():
        state = DeviceSimulationState(device_instance_id=f"inst-{profile.id}")
        for seq in range(1, 31):
            result = generate(profile, state, make_context(seq=seq, device_instance_id=state.device_instance_id))
            state = result.updated_state
            for name, spec in profile.fields.items():
                value = result.fields[name]
                if isinstance(spec, IntField):
                    assert isinstance(value, int) and not isinstance(value, bool)
                    assert spec.min <= value <= spec.max
                elif isinstance(spec, FloatField):
                    assert spec.min <= value <= spec.max
                    assert round(value, spec.precision) == value
                elif isinstance(spec, EnumField):
                    assert value in spec.values


def test_static_field_emits_its_default(mixed_profile, fresh_state):
    for seq in range(1, 6):
        assert generate(mixed_profile, fresh_state, make_context(seq=seq)).fields["kind"] == "water"


def test_increment_field_counts_per_emission_and_saturates_at_max(fresh_state):
    profile = make_profile({"hits": {"type": "int", "min": 0, "max": 3, "increment": True}})
    state = fresh_state
    values = []
    for seq in range(1, 7):
        result = generate(profile, state, make_context(seq=seq))
        state = result.updated_state
        values.append(result.fields["hits"])

    assert values == [1, 2, 3, 3, 3, 3]


def test_increment_counters_are_independent_per_field(fresh_state):
    profile = make_profile(
        {
            "a": {"type": "int", "min": 0, "max": 100, "increment": True},
            "b": {"type": "int", "min": 0, "max": 100, "increment": True},
        }
    )
    state = DeviceSimulationState(device_instance_id="dev-1", counters={"b": 10})
    result = generate(profile, state, make_context())

    assert result.fields == {"a": 1, "b": 11}


def test_drift_caps_change_between_emissions(fresh_state):
    profile = make_profile({"level": {"type": "float", "min": 0, "max": 100, "precision": 1, "drift": 1.0}})
    state = fresh_state
    previous = None
    for seq in range(1, 40):
        result = generate(profile, state, make_context(seq=seq))
        state = result.updated_state
        value = result.fields["level"]
        if previous is not None:
            assert abs(value - previous) <= 1.0 + 1e-9
        previous = value
    assert state.last_values["level"] == previous


def test_category_enables_drift_for_float_fields(em300, fresh_state):
    state = fresh_state
    previous = None
    for seq in range(1, 20):
        result = generate(em300, state, make_context(seq=seq))
        state = result.updated_state
        if previous is not None:
            assert abs(result.fields["temperature"] - previous) <= 2.0 + 1e-9
        previous = result.fields["temperature"]


def test_bool_probability_and_enum_weights_are_honoured(fresh_state):
    profile = make_profile(
        {
            "never": {"type": "bool", "true_probability": 0.0},
            "always": {"type": "bool", "true_probability": 1.0},
            "mode": {"type": "enum", "values": ["off", "on"], "weights": [0, 1]},
        }
    )
    for seq in range(1, 25):
        fields = generate(profile, fresh_state, make_context(seq=seq)).fields
        assert fields == {"never": False, "always": True, "mode": "on"}


def test_alarm_mode_overlays_example_and_clamps(em300, fresh_state):
    result = generate(em300, fresh_state, make_context(), mode="alarm", alarm_overrides={"temperature": 400})

    assert result.fields["temperature"] == 85.0
    assert result.mode == "alarm"


def test_unknown_mode_is_a_configuration_error(em300, fresh_state):
    with pytest.raises(ConfigurationError):
        generate(em300, fresh_state, make_context(), mode="party")


def test_clamp_fields_clamps_numbers_and_rejects_bad_members(mixed_profile):
    clamped = clamp_fields({"level": 5000.12345, "count": 12.6, "extra": {"x": 1}}, mixed_profile)
    assert clamped == {"level": 1000.0, "count": 13, "extra": {"x": 1}}

    with pytest.raises(ValidationError):
        clamp_fields({"state": "z"}, mixed_profile)
    with pytest.raises(ValidationError):
        clamp_fields({"level": math.nan}, mixed_profile)
    with pytest.raises(ValidationError):
        clamp_fields({"open": "yes"}, mixed_profile)


def test_verify_determinism(mixed_profile):
    assert verify_determinism(mixed_profile, make_context(seq=3), iterations=20)
