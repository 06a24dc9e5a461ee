"""Motion tuning: defaults, safe ranges and JSON presets.

Tuning values arrive from a debug panel or a preset file and are treated as
untrusted numbers. Every field is clamped into a safe range and anything
that is not a finite number falls back to the default, so building a
``MotionTuning`` never fails on numeric input.

Example:
    >>> tuning = sanitize_tuning({"speed": float("nan"), "acceleration": 100})
    >>> tuning.speed, tuning.acceleration
    (0.72, 8.0)
"""

from __future__ import annotations
import json
import math
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator


# name -> (default, min, max)
TUNING_RANGES: Dict[str, Tuple[float, float, float]] = {
    "speed": (0.72, 0.05, 2.0),
    "acceleration": (2.4, 0.1, 8.0),
    "corner_slowdown": (1.0, 0.0, 5.0),
    "curve_strength": (0.35, 0.0, 1.0),
    "collision_radius": (0.12, 0.02, 0.4),
    "deflection_strength": (1.0, 0.0, 1.0),
    "look_ahead_time": (0.4, 0.05, 1.5),
    "clamp_margin": (0.15, 0.0, 0.5),
}

TUNING_KEYS = tuple(TUNING_RANGES)

DEFAULT_TUNING: Dict[str, float] = {name: bounds[0] for name, bounds in TUNING_RANGES.items()}


def _clamp_field(name: str, value: Any) -> float:
    default, lo, hi = TUNING_RANGES[name]
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return min(hi, max(lo, number))


class MotionTuning(BaseModel):
    """Sanitized engine configuration.

    Attributes:
        speed: Cruise speed along the path (court units per second).
        acceleration: Speed change limit (court units per second squared).
        corner_slowdown: How strongly curvature lowers the target speed.
        curve_strength: Bend of automatic curves as a fraction of path length.
        collision_radius: Distance between token centres treated as touching.
        deflection_strength: Scale of the sidestep around a conflict.
        look_ahead_time: Seconds of travel projected ahead for braking.
        clamp_margin: How far rendered tokens may leave the court square.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    speed: float = DEFAULT_TUNING["speed"]
    acceleration: float = DEFAULT_TUNING["acceleration"]
    corner_slowdown: float = DEFAULT_TUNING["corner_slowdown"]
    curve_strength: float = DEFAULT_TUNING["curve_strength"]
    collision_radius: float = DEFAULT_TUNING["collision_radius"]
    deflection_strength: float = DEFAULT_TUNING["deflection_strength"]
    look_ahead_time: float = DEFAULT_TUNING["look_ahead_time"]
    clamp_margin: float = DEFAULT_TUNING["clamp_margin"]

    @field_validator(*TUNING_KEYS, mode="before")
    @classmethod
    def _sanitize(cls, value: Any, info) -> float:
        return _clamp_field(info.field_name, value)

    @property
    def max_lateral_offset(self) -> float:
        return 1.6 * self.collision_radius

    def updated(self, **changes: Any) -> "MotionTuning":
        """Return a re-sanitized copy with ``changes`` applied."""
        values = self.model_dump()
        values.update({k: v for k, v in changes.items() if k in TUNING_RANGES})
        return MotionTuning(**values)


TuningLike = Union[MotionTuning, Mapping[str, Any], None]


def sanitize_tuning(value: TuningLike = None) -> MotionTuning:
    """Build a sanitized ``MotionTuning`` from a model, a mapping or ``None``.

    Unknown keys in a mapping are ignored; missing keys take their default.
    """
    if value is None:
        return MotionTuning()
    if isinstance(value, MotionTuning):
        # Re-run validation in case the instance was built with model_construct.
        return MotionTuning(**value.model_dump())
    return MotionTuning(**{k: v for k, v in dict(value).items() if k in TUNING_RANGES})


def load_tuning_file(filepath: str) -> MotionTuning:
    """Load a tuning preset from a JSON file.

    Args:
        filepath: Path to a JSON object with any subset of ``TUNING_KEYS``.

    Returns:
        Sanitized tuning with missing keys set to their defaults.

    Raises:
        ValueError: The file names a key that is not a tuning field.
    """
    with open(filepath, 'r') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Tuning preset must be a JSON object, got {type(data).__name__}")

    supported = set(TUNING_KEYS)
    unknown = set(data.keys()) - supported
    if unknown:
        raise ValueError(f"Unknown parameters in preset file: {unknown}. Supported: {supported}")

    return sanitize_tuning(data)


def tuning_from_preset(preset_file: Optional[str] = None) -> MotionTuning:
    if preset_file is None:
        return MotionTuning()
    return load_tuning_file(preset_file)
