"""Overlap relaxation for tokens at rest.

When tokens are idle (no play running) they can still sit on top of each
other, for example right after a drag. ``relax_layout`` spreads them apart
with a few rounds of pairwise repulsion while pulling every token back
toward where it was placed, and settles on a compromise between the two.
There is no time, speed or path here; the engine handles motion.
"""

from __future__ import annotations
from typing import Dict, Mapping, Optional, Tuple

from .geometry import EPSILON, clamp_to_extended_bounds, is_finite_point, to_position
from .roles import Role, RoleLike, RoleOrder, as_role
from .tuning import TuningLike, sanitize_tuning
from .types import Position


RELAX_ITERATIONS = 8
HOME_PULL = 0.2
YIELD_SHARE = 0.7


def _push_shares(order: RoleOrder, a: Role, b: Role, dragged: Optional[Role]) -> Tuple[float, float]:
    """How much of an overlap ``a`` and ``b`` each absorb."""
    if a == dragged:
        return 0.0, 1.0
    if b == dragged:
        return 1.0, 0.0
    if order.outranks(b, a):
        return YIELD_SHARE, 1.0 - YIELD_SHARE
    if order.outranks(a, b):
        return 1.0 - YIELD_SHARE, YIELD_SHARE
    return 0.5, 0.5


def relax_layout(
    homes: Mapping[RoleLike, Tuple[float, float]],
    tuning: TuningLike = None,
    dragged: Optional[RoleLike] = None,
    priorities: Optional[Mapping[RoleLike, int]] = None,
    iterations: int = RELAX_ITERATIONS,
    home_pull: float = HOME_PULL,
) -> Dict[Role, Position]:
    """Separate overlapping tokens around their home positions.

    Args:
        homes: Where each token was placed.
        tuning: Supplies ``collision_radius`` (minimum centre distance) and
            ``clamp_margin``.
        dragged: Token under the pointer. It never moves.
        priorities: Role priorities; lower-priority tokens give way more.
        iterations: Rounds of repulsion plus home pull.
        home_pull: Fraction of the way back home each round.

    Returns:
        Display position per role. Tokens without a finite home are left out.
    """
    settings = sanitize_tuning(tuning)
    order = RoleOrder(priorities)
    held = as_role(dragged) if dragged is not None else None
    min_dist = settings.collision_radius

    anchors: Dict[Role, Position] = {
        as_role(role): to_position(pos) for role, pos in homes.items() if is_finite_point(pos)
    }
    roles = order.sorted(anchors)
    current = dict(anchors)

    for _ in range(iterations):
        shift = {role: [0.0, 0.0] for role in roles}
        for i, a in enumerate(roles):
            for b in roles[i + 1:]:
                pa, pb = current[a], current[b]
                dx, dy = pa.x - pb.x, pa.y - pb.y
                d = (dx * dx + dy * dy) ** 0.5
                if d >= min_dist:
                    continue
                if d > EPSILON:
                    ux, uy = dx / d, dy / d
                else:
                    # Stacked exactly: split sideways.
                    ux, uy = 1.0, 0.0
                overlap = min_dist - d
                share_a, share_b = _push_shares(order, a, b, held)
                shift[a][0] += ux * overlap * share_a
                shift[a][1] += uy * overlap * share_a
                shift[b][0] -= ux * overlap * share_b
                shift[b][1] -= uy * overlap * share_b

        for role in roles:
            if role == held:
                continue
            x = current[role].x + shift[role][0]
            y = current[role].y + shift[role][1]
            home = anchors[role]
            x += (home.x - x) * home_pull
            y += (home.y - y) * home_pull
            current[role] = clamp_to_extended_bounds((x, y), settings.clamp_margin)

    return current
