"""Quadratic Bezier geometry for whiteboard paths.

Every path is a quadratic Bezier ``start -> control -> end`` or, when the
control point is ``None``, a straight segment. Agents move along paths at a
physical speed, so the module also provides an arc-length table
(``MotionPath``) and its inverse lookup ``position_at_distance``.

Arc length is approximated with a fixed number of chords. The sampling is
deterministic so two engines fed the same input produce identical output.
"""

from __future__ import annotations
import math
import numpy as np

from .types import Position


EPSILON = 1e-6

# Chord count for arc-length tables; plenty for on-screen path lengths.
ARC_SAMPLES = 70


def is_finite_point(p) -> bool:
    """True if ``p`` is a point whose coordinates are both finite numbers."""
    if p is None:
        return False
    try:
        return math.isfinite(p[0]) and math.isfinite(p[1])
    except (TypeError, IndexError):
        return False


def to_position(p) -> Position:
    return Position(float(p[0]), float(p[1]))


def vec_sub(a, b) -> Position:
    return Position(a[0] - b[0], a[1] - b[1])


def vec_add(a, b) -> Position:
    return Position(a[0] + b[0], a[1] + b[1])


def vec_scale(v, s: float) -> Position:
    return Position(v[0] * s, v[1] * s)


def vec_length(v) -> float:
    return math.hypot(v[0], v[1])


def vec_perp(v) -> Position:
    return Position(-v[1], v[0])


def vec_cross(a, b) -> float:
    return a[0] * b[1] - a[1] * b[0]


def vec_dot(a, b) -> float:
    return a[0] * b[0] + a[1] * b[1]


def vec_normalize(v) -> Position:
    n = vec_length(v)
    if n <= EPSILON:
        return Position(0.0, 0.0)
    return Position(v[0] / n, v[1] / n)


def distance(a, b) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def evaluate_bezier(start, control, end, t: float) -> Position:
    """Point at parameter ``t`` on the path.

    Quadratic Bezier when ``control`` is given, linear interpolation
    otherwise.

    Example:
        >>> evaluate_bezier((0, 0), None, (1, 0), 0.25)
        Position(x=0.25, y=0.0)
        >>> evaluate_bezier((0, 0), (0.5, 1), (1, 0), 0.5)
        Position(x=0.5, y=0.5)
    """
    if control is None:
        return Position(
            start[0] + (end[0] - start[0]) * t,
            start[1] + (end[1] - start[1]) * t,
        )
    mt = 1.0 - t
    return Position(
        mt * mt * start[0] + 2.0 * mt * t * control[0] + t * t * end[0],
        mt * mt * start[1] + 2.0 * mt * t * control[1] + t * t * end[1],
    )


def bezier_derivative(start, control, end, t: float) -> Position:
    if control is None:
        return Position(end[0] - start[0], end[1] - start[1])
    mt = 1.0 - t
    return Position(
        2.0 * mt * (control[0] - start[0]) + 2.0 * t * (end[0] - control[0]),
        2.0 * mt * (control[1] - start[1]) + 2.0 * t * (end[1] - control[1]),
    )


def sample_bezier(start, control, end, count: int) -> np.ndarray:
    """Evaluate ``count + 1`` evenly spaced parameters as an ``(N, 2)`` array."""
    t = np.linspace(0.0, 1.0, count + 1)[:, None]
    P0 = np.asarray(start, dtype=np.float64)
    P2 = np.asarray(end, dtype=np.float64)
    if control is None:
        return P0 + (P2 - P0) * t
    P1 = np.asarray(control, dtype=np.float64)
    mt = 1.0 - t
    return mt * mt * P0 + 2.0 * mt * t * P1 + t * t * P2


def arc_length(start, control, end, samples: int = ARC_SAMPLES) -> float:
    """Path length as the sum of ``samples`` chord lengths.

    Example:
        >>> round(arc_length((0.5, 0.8), None, (0.5, 0.2)), 9)
        0.6
    """
    pts = sample_bezier(start, control, end, samples)
    seg = np.diff(pts, axis=0)
    return float(np.hypot(seg[:, 0], seg[:, 1]).sum())


def curvature_at(start, control, end, t: float) -> float:
    """Curvature magnitude ``|x'y'' - y'x''| / (x'^2 + y'^2)^1.5`` at ``t``.

    Straight paths have zero curvature everywhere. A vanishing first
    derivative also reports zero rather than dividing by it.
    """
    if control is None:
        return 0.0
    d1 = bezier_derivative(start, control, end, t)
    d2x = 2.0 * (end[0] - 2.0 * control[0] + start[0])
    d2y = 2.0 * (end[1] - 2.0 * control[1] + start[1])
    denom = (d1[0] * d1[0] + d1[1] * d1[1]) ** 1.5
    if denom <= EPSILON:
        return 0.0
    return abs(d1[0] * d2y - d1[1] * d2x) / denom


def curve_midpoint(start, control, end) -> Position:
    """Bezier point at ``t = 0.5``; the chord midpoint for straight paths."""
    if control is None:
        return Position(0.5 * (start[0] + end[0]), 0.5 * (start[1] + end[1]))
    return Position(
        0.25 * start[0] + 0.5 * control[0] + 0.25 * end[0],
        0.25 * start[1] + 0.5 * control[1] + 0.25 * end[1],
    )


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp_to_extended_bounds(p, margin: float) -> Position:
    """Clamp a point into ``[-margin, 1 + margin]`` on both axes."""
    return Position(
        clamp(p[0], -margin, 1.0 + margin),
        clamp(p[1], -margin, 1.0 + margin),
    )


class MotionPath:
    """A locked path with its arc-length table.

    Attributes:
        start: First point of the path.
        control: Bezier control point, or ``None`` for a straight line.
        end: Last point of the path.
        params: ``(N,)`` curve parameters of the table rows.
        points: ``(N, 2)`` positions at ``params``.
        cumulative: ``(N,)`` arc length from ``start`` to each row.
        length: Total arc length (``cumulative[-1]``).

    Example:
        >>> path = MotionPath((0, 0), None, (1, 0))
        >>> round(path.length, 9)
        1.0
        >>> path.position_at_distance(2.0)
        Position(x=1.0, y=0.0)
    """

    def __init__(self, start, control, end, samples: int = ARC_SAMPLES):
        self.start = to_position(start)
        self.control = to_position(control) if control is not None else None
        self.end = to_position(end)

        self.params = np.linspace(0.0, 1.0, samples + 1)
        self.points = sample_bezier(self.start, self.control, self.end, samples)
        seg = np.diff(self.points, axis=0)
        chords = np.hypot(seg[:, 0], seg[:, 1])
        self.cumulative = np.concatenate(([0.0], np.cumsum(chords)))
        self.length = float(self.cumulative[-1])

    def position_at_distance(self, dist: float) -> Position:
        """Point at arc length ``dist`` from ``start``.

        Walks the chord table and interpolates linearly inside the chord
        containing ``dist``. Returns ``end`` once ``dist`` reaches the length.
        """
        if dist >= self.length:
            return self.end
        if dist <= 0.0:
            return self.start
        i = int(np.searchsorted(self.cumulative, dist, side='right')) - 1
        i = min(max(i, 0), len(self.cumulative) - 2)
        s0 = self.cumulative[i]
        span = max(EPSILON, self.cumulative[i + 1] - s0)
        alpha = clamp((dist - s0) / span, 0.0, 1.0)
        a = self.points[i]
        b = self.points[i + 1]
        return Position(
            float(a[0] + (b[0] - a[0]) * alpha),
            float(a[1] + (b[1] - a[1]) * alpha),
        )

    def curvature_at(self, t: float) -> float:
        return curvature_at(self.start, self.control, self.end, t)

    def normal_at(self, t: float) -> Position:
        """Unit left-hand normal of the path direction at ``t``."""
        tangent = vec_normalize(bezier_derivative(self.start, self.control, self.end, t))
        if tangent == (0.0, 0.0):
            tangent = vec_normalize(vec_sub(self.end, self.start))
        return vec_perp(tangent)


def position_at_distance(path: MotionPath, dist: float) -> Position:
    return path.position_at_distance(dist)

