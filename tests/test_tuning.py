import json

import pytest
from pydantic import ValidationError
from whiteboardmotion.tuning import (
    DEFAULT_TUNING,
    TUNING_KEYS,
    TUNING_RANGES,
    MotionTuning,
    load_tuning_file,
    sanitize_tuning,
    tuning_from_preset,
)


# --------------------- Defaults and sanitization ---------------------

def test_defaults_match_table():
    tuning = MotionTuning()
    assert tuning.model_dump() == DEFAULT_TUNING


def test_default_table_is_inside_ranges():
    for name, (default, lo, hi) in TUNING_RANGES.items():
        assert lo <= default <= hi, name


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf"), None, "fast", [], True])
def test_unusable_values_fall_back_to_default(bad):
    tuning = sanitize_tuning({"speed": bad})
    assert tuning.speed == DEFAULT_TUNING["speed"]


def test_values_are_clamped_into_range():
    tuning = sanitize_tuning({
        "speed": 50,
        "acceleration": 0.0,
        "curve_strength": -3,
        "deflection_strength": 7,
        "collision_radius": 1e-9,
    })
    assert tuning.speed == 2.0
    # Acceleration never reaches zero, so agents always get moving.
    assert tuning.acceleration == 0.1
    assert tuning.curve_strength == 0.0
    assert tuning.deflection_strength == 1.0
    assert tuning.collision_radius == 0.02


def test_numeric_strings_are_accepted():
    assert sanitize_tuning({"speed": "0.5"}).speed == 0.5


def test_unknown_keys_are_ignored_by_sanitize():
    tuning = sanitize_tuning({"speed": 0.5, "wobble": 3})
    assert tuning.speed == 0.5
    assert not hasattr(tuning, "wobble")


def test_sanitize_accepts_none_and_models():
    assert sanitize_tuning(None) == MotionTuning()
    raw = MotionTuning.model_construct(**dict(DEFAULT_TUNING, speed=99.0))
    assert sanitize_tuning(raw).speed == 2.0


def test_tuning_is_frozen():
    tuning = MotionTuning()
    with pytest.raises(ValidationError):
        tuning.speed = 1.0


def test_updated_resanitizes_and_copies():
    """A debug-panel edit returns a new sanitized model and leaves the old one alone."""
    base = MotionTuning()
    changed = base.updated(speed=float("nan"), acceleration=100, not_a_field=1)
    assert changed.speed == DEFAULT_TUNING["speed"]
    assert changed.acceleration == 8.0
    assert base.acceleration == DEFAULT_TUNING["acceleration"]


def test_max_lateral_offset_follows_radius():
    tuning = sanitize_tuning({"collision_radius": 0.1})
    assert tuning.max_lateral_offset == pytest.approx(0.16)


# --------------------- Preset files ---------------------

def test_load_tuning_file(tmp_path):
    preset = tmp_path / "slow.json"
    preset.write_text(json.dumps({"speed": 0.3, "look_ahead_time": 9}))

    tuning = load_tuning_file(str(preset))

    assert tuning.speed == 0.3
    assert tuning.look_ahead_time == 1.5
    assert tuning.acceleration == DEFAULT_TUNING["acceleration"]


def test_load_tuning_file_rejects_unknown_keys(tmp_path):
    preset = tmp_path / "bad.json"
    preset.write_text(json.dumps({"speed": 0.3, "mouse_velocity": 1}))

    with pytest.raises(ValueError, match="Unknown parameters"):
        load_tuning_file(str(preset))


def test_load_tuning_file_rejects_non_objects(tmp_path):
    preset = tmp_path / "list.json"
    preset.write_text(json.dumps([0.3]))

    with pytest.raises(ValueError, match="JSON object"):
        load_tuning_file(str(preset))


def test_load_tuning_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tuning_file(str(tmp_path / "missing.json"))


def test_tuning_from_preset_defaults_without_file():
    assert tuning_from_preset(None) == MotionTuning()


def test_tuning_from_preset_delegates_to_loader(mocker):
    expected = MotionTuning(speed=0.4)
    loader = mocker.patch("whiteboardmotion.tuning.load_tuning_file", return_value=expected)

    assert tuning_from_preset("team.json") is expected
    loader.assert_called_once_with("team.json")


def test_every_key_is_documented_in_model():
    assert set(TUNING_KEYS) == set(MotionTuning.model_fields)
