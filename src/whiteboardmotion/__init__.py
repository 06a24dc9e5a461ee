from .roles import ROLE_PRIORITY, ROLES, Role, RoleOrder
from .types import AgentSnapshot, LockedPathDefinition, Position, WhiteboardPlaySnapshot
from .tuning import DEFAULT_TUNING, MotionTuning, load_tuning_file, sanitize_tuning
from .geometry import (
    MotionPath,
    arc_length,
    curvature_at,
    curve_midpoint,
    evaluate_bezier,
    position_at_distance,
)
from .planner import compute_default_control_point, lock_paths
from .engine import PlayEngine, create_engine
from .playback import FixedStepPlayer, PlaybackFrame, interpolate_snapshots, play_async, run_to_completion
from .layout import relax_layout


def run_play(*args, **kwargs) -> WhiteboardPlaySnapshot:
    """
    Convenience function for reduced-motion playback.
    Builds a fresh engine from the create_engine() arguments and returns its final snapshot.
    """
    return run_to_completion(create_engine(*args, **kwargs))
