"""Automatic curve selection for arrows the coach has not bent by hand.

The planner tries three shapes for each move (straight, bulge left, bulge
right), measures how close each one passes to the other tokens, and keeps
the one with the most room. Curves that bend toward the middle of the court
get a bonus larger than any clearance on a unit court, so they win whenever
the chord does not point at the centre. Very short hops get a smaller bonus
for staying straight.

Planning runs once when a play starts. The result is frozen into a
``LockedPathDefinition`` so the trajectory does not change while other
tokens move.
"""

from __future__ import annotations
import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .geometry import (
    EPSILON,
    distance,
    evaluate_bezier,
    is_finite_point,
    to_position,
    vec_cross,
    vec_perp,
    vec_sub,
)
from .roles import ROLES, Role, RoleLike, as_role
from .tuning import TuningLike, sanitize_tuning
from .types import LockedPathDefinition, Position

log = logging.getLogger(__name__)


COURT_CENTER = Position(0.5, 0.5)

CANDIDATE_SAMPLES = 11
CONCAVE_BONUS = 5.0
STRAIGHT_BONUS = 2.0
SHORT_PATH = 0.08


def candidate_control_points(
    start, end, curve_strength: float
) -> List[Tuple[str, Optional[Position]]]:
    """Return the ``straight``, ``left`` and ``right`` candidates in order.

    Each bulge pushes the chord midpoint ``curve_strength * chord length``
    along the chord's left or right normal.
    """
    delta = vec_sub(end, start)
    dist = distance(start, end)
    if dist < EPSILON:
        return [("straight", None)]

    direction = Position(delta[0] / dist, delta[1] / dist)
    perp = vec_perp(direction)
    bend = curve_strength * dist
    mid = Position(0.5 * (start[0] + end[0]), 0.5 * (start[1] + end[1]))

    return [
        ("straight", None),
        ("left", Position(mid.x + perp.x * bend, mid.y + perp.y * bend)),
        ("right", Position(mid.x - perp.x * bend, mid.y - perp.y * bend)),
    ]


def path_clearance(start, control, end, neighbors: Iterable) -> float:
    """Smallest distance from the sampled curve to any finite neighbour point.

    Neighbours without a usable position are skipped. With no neighbours
    the clearance is infinite.
    """
    points = [neighbor for neighbor in neighbors if is_finite_point(neighbor)]
    best = math.inf
    for i in range(CANDIDATE_SAMPLES):
        t = i / (CANDIDATE_SAMPLES - 1)
        p = evaluate_bezier(start, control, end, t)
        for q in points:
            d = distance(p, q)
            if d < best:
                best = d
    return best


def score_candidate(
    start, control, end, neighbors, center=COURT_CENTER
) -> float:
    clearance = path_clearance(start, control, end, neighbors)
    # Nobody to avoid: only the shape bonuses count.
    score = clearance if math.isfinite(clearance) else 0.0

    if control is None:
        if distance(start, end) < SHORT_PATH:
            score += STRAIGHT_BONUS
        return score

    mid = Position(0.5 * (start[0] + end[0]), 0.5 * (start[1] + end[1]))
    direction = vec_sub(end, start)
    bulge_side = vec_cross(direction, vec_sub(control, mid))
    center_side = vec_cross(direction, vec_sub(center, mid))
    if bulge_side * center_side > 0.0:
        score += CONCAVE_BONUS
    return score


def compute_default_control_point(
    start,
    end,
    curve_strength: float,
    neighbors: Iterable = (),
    center=COURT_CENTER,
) -> Optional[Position]:
    """Pick a control point for a move, or ``None`` for a straight line.

    Args:
        start: Where the token stands now.
        end: Arrow target.
        curve_strength: Bulge size as a fraction of the chord length.
        neighbors: Current positions of the other tokens on the court.
        center: Point the preferred bulge direction faces.

    Returns:
        Control point of the best-scoring candidate. Ties keep the earliest
        candidate in ``straight, left, right`` order. Degenerate moves and a
        ``curve_strength`` of zero give ``None``.

    Example:
        >>> cp = compute_default_control_point((0.2, 0.9), (0.8, 0.9), 0.35)
        >>> round(cp.x, 6), round(cp.y, 6)
        (0.5, 0.69)
    """
    if not (is_finite_point(start) and is_finite_point(end)):
        return None
    if curve_strength <= 0.0 or distance(start, end) < EPSILON:
        return None

    neighbors = list(neighbors)
    best_control: Optional[Position] = None
    best_score = float("-inf")
    for _name, control in candidate_control_points(start, end, curve_strength):
        score = score_candidate(start, control, end, neighbors, center)
        if score > best_score:
            best_score = score
            best_control = control
    return best_control


def lock_paths(
    targets: Mapping[RoleLike, Tuple[float, float]],
    positions: Mapping[RoleLike, Tuple[float, float]],
    tuning: TuningLike = None,
    overrides: Optional[Mapping[RoleLike, Tuple[float, float]]] = None,
) -> List[LockedPathDefinition]:
    """Capture one ``LockedPathDefinition`` per role that has an arrow.

    Args:
        targets: Arrow end point per role.
        positions: Current token position per role (paths start here, and
            the other entries are the neighbours the planner avoids).
        tuning: Supplies ``curve_strength``.
        overrides: Control points the coach dragged by hand. These win over
            the planner.

    Returns:
        Definitions in canonical role order. Roles without a finite start or
        target are skipped.
    """
    settings = sanitize_tuning(tuning)
    current: Dict[Role, Position] = {
        as_role(role): to_position(pos) for role, pos in positions.items() if is_finite_point(pos)
    }
    arrows = {as_role(role): pos for role, pos in targets.items()}
    manual = {as_role(role): pos for role, pos in (overrides or {}).items()}

    locked: List[LockedPathDefinition] = []
    for role in ROLES:
        if role not in arrows:
            continue
        start = current.get(role)
        end = arrows[role]
        if start is None or not is_finite_point(end):
            log.debug("Skipping path for %s: no usable start or target", role.value)
            continue
        end = to_position(end)

        override = manual.get(role)
        if override is not None and is_finite_point(override):
            control = to_position(override)
        else:
            neighbors = [pos for other, pos in current.items() if other != role]
            control = compute_default_control_point(
                start, end, settings.curve_strength, neighbors
            )
        locked.append(LockedPathDefinition(role=role, start=start, end=end, control=control))
    return locked
