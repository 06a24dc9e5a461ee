"""Fixed-step play engine for whiteboard formation changes.

Each animated role becomes an agent that follows its locked path. Every
step the engine:

1. Composes a target speed from cruise speed, corner slowdown, end-of-path
   easing, proximity braking and look-ahead braking.
2. Moves the current speed toward the target, limited by the acceleration.
3. Advances the agent along its path by arc length.
4. Springs a small sideways offset that steps the token around conflicts.

Collision handling is one-sided: an agent only reacts to roles it yields
to (see ``RoleOrder``), so two agents can never wait on each other. All
agents read neighbour positions from the previous completed step, which
makes the result independent of the order agents are processed in.

Example:
    Basic usage::

        from whiteboardmotion import LockedPathDefinition, Position, Role, create_engine

        engine = create_engine(
            active_roles=[Role.S],
            initial_positions={Role.S: Position(0.5, 0.8)},
            locked_paths=[LockedPathDefinition(Role.S, Position(0.5, 0.8), Position(0.5, 0.2))],
        )
        while not engine.is_done():
            snapshot = engine.step(1 / 120)
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .geometry import (
    EPSILON,
    MotionPath,
    clamp,
    clamp_to_extended_bounds,
    distance,
    is_finite_point,
    to_position,
    vec_cross,
    vec_dot,
    vec_length,
)
from .roles import Role, RoleLike, RoleOrder, as_role
from .tuning import MotionTuning, TuningLike, sanitize_tuning
from .types import AgentSnapshot, LockedPathDefinition, Position, WhiteboardPlaySnapshot

log = logging.getLogger(__name__)


MAX_STEP_DT = 0.2

CORNER_GAIN = 0.4
MIN_SPEED_FRACTION = 0.2
LOOK_AHEAD_SPEED_FRACTION = 0.35

BRAKE_RADIUS_FACTOR = 1.2
LOOK_AHEAD_RADIUS_FACTOR = 0.9
DEFLECT_RADIUS_FACTOR = 2.2
END_WINDOW_FACTOR = 2.0

OUTRANKED_WEIGHT = 1.0
TIED_WEIGHT = 0.7
ANTICIPATION_BOOST = 1.3

DEFLECTION_SPRING = 12.0
DEFLECTION_DAMPING = 7.0


@dataclass
class Agent:
    """Mutable per-role simulation state. Only ``PlayEngine.step`` writes it."""

    role: Role
    path: MotionPath
    distance: float = 0.0
    current_speed: float = 0.0
    target_speed: float = 0.0
    lateral_offset: Position = field(default_factory=lambda: Position(0.0, 0.0))
    lateral_offset_velocity: Position = field(default_factory=lambda: Position(0.0, 0.0))
    done: bool = False

    @property
    def length(self) -> float:
        return self.path.length

    @property
    def remaining(self) -> float:
        return max(0.0, self.path.length - self.distance)

    @property
    def progress(self) -> float:
        return clamp(self.distance / self.path.length, 0.0, 1.0)


class PlayEngine:
    """Owns the agents of one play and advances them in fixed steps.

    Lifecycle is constructed -> stepping -> all done. There is no pause or
    reset; build a new engine to replay.

    Attributes:
        tuning: Sanitized tuning captured at construction.
        order: Right-of-way order between roles.

    Example:
        >>> from whiteboardmotion import Position, Role, LockedPathDefinition
        >>> engine = PlayEngine(
        ...     active_roles=[Role.S],
        ...     initial_positions={Role.S: Position(0.5, 0.8)},
        ...     locked_paths=[LockedPathDefinition(Role.S, Position(0.5, 0.8), Position(0.5, 0.2))],
        ... )
        >>> engine.get_snapshot().done
        False
    """

    def __init__(
        self,
        active_roles: Iterable[RoleLike],
        initial_positions: Mapping[RoleLike, Tuple[float, float]],
        locked_paths: Iterable[LockedPathDefinition],
        tuning: TuningLike = None,
        priorities: Optional[Mapping[RoleLike, int]] = None,
    ):
        self.tuning: MotionTuning = sanitize_tuning(tuning)
        self.order = RoleOrder(priorities)

        self._positions: Dict[Role, Position] = {}
        for role in active_roles:
            role = as_role(role)
            pos = initial_positions.get(role)
            if is_finite_point(pos):
                self._positions[role] = to_position(pos)
            else:
                log.debug("No usable initial position for %s; ignoring it as a neighbour", role.value)

        agents: Dict[Role, Agent] = {}
        for definition in locked_paths:
            role = as_role(definition.role)
            points = [definition.start, definition.end]
            if definition.control is not None:
                points.append(definition.control)
            if not all(is_finite_point(p) for p in points):
                log.debug("Dropping path for %s: non-finite coordinates", role.value)
                continue

            path = MotionPath(definition.start, definition.control, definition.end)
            if path.length <= EPSILON:
                log.debug("Dropping zero-length path for %s", role.value)
                continue

            agents[role] = Agent(role=role, path=path, target_speed=self.tuning.speed)
            self._positions[role] = path.start

        self._agents: Dict[Role, Agent] = {role: agents[role] for role in self.order.sorted(agents)}
        self._elapsed = 0.0
        self._steps = 0

    # -------------------- Queries --------------------

    @property
    def roles(self) -> List[Role]:
        """Roles that are animated, in right-of-way order."""
        return list(self._agents)

    def is_done(self) -> bool:
        return all(agent.done for agent in self._agents.values())

    def get_snapshot(self) -> WhiteboardPlaySnapshot:
        """Readout of the current state without advancing time."""
        agents = {
            role: AgentSnapshot(
                role=role,
                distance=agent.distance,
                length=agent.length,
                progress=agent.progress,
                current_speed=agent.current_speed,
                target_speed=agent.target_speed,
                lateral_offset=agent.lateral_offset,
                done=agent.done,
            )
            for role, agent in self._agents.items()
        }
        return WhiteboardPlaySnapshot(
            positions=dict(self._positions),
            agents=agents,
            done=self.is_done(),
            elapsed=self._elapsed,
            steps=self._steps,
        )

    # -------------------- Stepping --------------------

    def step(self, dt: float) -> WhiteboardPlaySnapshot:
        """Advance every unfinished agent by ``dt`` seconds.

        A non-finite or non-positive ``dt`` leaves the state untouched, and
        ``dt`` is capped at ``MAX_STEP_DT``.

        Returns:
            A new snapshot of the state after the step.
        """
        if not math.isfinite(dt) or dt <= 0.0 or self.is_done():
            return self.get_snapshot()
        dt = min(dt, MAX_STEP_DT)

        # Everyone reads the positions of the last completed step.
        previous = dict(self._positions)
        updated: Dict[Role, Position] = {}
        for role, agent in self._agents.items():
            if agent.done:
                continue
            updated[role] = self._advance_agent(agent, dt, previous)

        self._positions.update(updated)
        self._elapsed += dt
        self._steps += 1

        if self.is_done():
            log.info("Play finished: %d agents in %d steps (%.3fs)",
                     len(self._agents), self._steps, self._elapsed)
        return self.get_snapshot()

    def _neighbors(self, role: Role, previous: Mapping[Role, Position]) -> List[Tuple[Role, Position]]:
        """Positions of the roles ``role`` has to give way to."""
        out = []
        for other, pos in previous.items():
            if other == role or not self.order.yields_to(role, other):
                continue
            if not is_finite_point(pos):
                log.debug("Skipping %s as neighbour of %s: non-finite position", other.value, role.value)
                continue
            out.append((other, pos))
        return out

    def _advance_agent(self, agent: Agent, dt: float, previous: Mapping[Role, Position]) -> Position:
        tuning = self.tuning
        self_pos = previous.get(agent.role, agent.path.start)
        neighbors = self._neighbors(agent.role, previous)

        target, look_ahead_point = self._compose_target_speed(agent, self_pos, neighbors)
        agent.target_speed = target

        # First-order rate limit toward the target.
        max_delta = tuning.acceleration * dt
        delta = clamp(target - agent.current_speed, -max_delta, max_delta)
        agent.current_speed = max(0.0, agent.current_speed + delta)

        agent.distance = min(agent.distance + agent.current_speed * dt, agent.length)
        if agent.distance >= agent.length:
            agent.distance = agent.length
            agent.done = True
            agent.current_speed = 0.0
            agent.target_speed = 0.0
            agent.lateral_offset = Position(0.0, 0.0)
            agent.lateral_offset_velocity = Position(0.0, 0.0)
            return agent.path.end

        base = agent.path.position_at_distance(agent.distance)
        self._update_lateral_offset(agent, base, look_ahead_point, neighbors, dt)
        rendered = (base[0] + agent.lateral_offset[0], base[1] + agent.lateral_offset[1])
        return clamp_to_extended_bounds(rendered, tuning.clamp_margin)

    # -------------------- Target Speed --------------------

    def _compose_target_speed(
        self,
        agent: Agent,
        self_pos: Position,
        neighbors: List[Tuple[Role, Position]],
    ) -> Tuple[float, Position]:
        """Return the target speed for this step and the look-ahead point.

        Starts from cruise speed and keeps the minimum of corner slowdown,
        end-of-path easing, proximity braking and look-ahead braking.
        """
        tuning = self.tuning
        cruise = tuning.speed
        radius = tuning.collision_radius
        floor = MIN_SPEED_FRACTION * cruise
        remaining = agent.remaining

        t = agent.distance / agent.length
        curvature = agent.path.curvature_at(t)
        target = cruise / (1.0 + curvature * tuning.corner_slowdown * CORNER_GAIN)

        end_window = END_WINDOW_FACTOR * radius
        if remaining < end_window:
            target = min(target, max(floor, cruise * remaining / end_window))

        brake_radius = BRAKE_RADIUS_FACTOR * radius
        for _other, pos in neighbors:
            d = distance(self_pos, pos)
            if d < brake_radius:
                urgency = 1.0 - d / brake_radius
                target = min(target, max(floor, cruise * (1.0 - urgency)))

        speed = agent.current_speed
        braking_distance = speed * speed / (2.0 * tuning.acceleration)
        stopping_zone = braking_distance + END_WINDOW_FACTOR * radius
        ahead = min(speed * tuning.look_ahead_time, remaining, stopping_zone)
        look_ahead_point = agent.path.position_at_distance(agent.distance + ahead)

        if remaining <= stopping_zone:
            for _other, pos in neighbors:
                if distance(look_ahead_point, pos) < LOOK_AHEAD_RADIUS_FACTOR * radius:
                    target = min(target, LOOK_AHEAD_SPEED_FRACTION * cruise)

        if not math.isfinite(target):
            log.debug("Non-finite target speed for %s; holding still this step", agent.role.value)
            target = 0.0
        return max(0.0, target), look_ahead_point

    # -------------------- Lateral Deflection --------------------

    def _update_lateral_offset(
        self,
        agent: Agent,
        base: Position,
        look_ahead_point: Position,
        neighbors: List[Tuple[Role, Position]],
        dt: float,
    ) -> None:
        """Spring the sideways offset toward a push away from close neighbours."""
        tuning = self.tuning
        radius = tuning.collision_radius
        max_offset = tuning.max_lateral_offset
        soft = DEFLECT_RADIUS_FACTOR * radius

        normal = agent.path.normal_at(agent.progress)
        tangent = Position(normal[1], -normal[0])

        push = 0.0
        for other, pos in neighbors:
            away = (base[0] - pos[0], base[1] - pos[1])
            d = vec_length(away)
            if d >= soft:
                continue

            weight = OUTRANKED_WEIGHT if self.order.outranks(other, agent.role) else TIED_WEIGHT
            if distance(look_ahead_point, pos) < soft:
                weight *= ANTICIPATION_BOOST

            projection = vec_dot(away, normal) / d if d > EPSILON else 0.0
            if abs(projection) < 0.05:
                # Head-on: sidestep away from the side the neighbour is on.
                side = vec_cross(tangent, (pos[0] - base[0], pos[1] - base[1]))
                projection = -1.0 if side > 0.0 else 1.0

            urgency = 1.0 - d / soft
            push += projection * urgency * weight

        end_ease = clamp(agent.remaining / (END_WINDOW_FACTOR * radius), 0.0, 1.0)
        magnitude = clamp(push * tuning.deflection_strength * radius * end_ease, -max_offset, max_offset)
        desired = (normal[0] * magnitude, normal[1] * magnitude)

        ox, oy = agent.lateral_offset
        vx, vy = agent.lateral_offset_velocity
        # Semi-implicit Euler: velocity first, then offset with the new velocity.
        vx += (DEFLECTION_SPRING * (desired[0] - ox) - DEFLECTION_DAMPING * vx) * dt
        vy += (DEFLECTION_SPRING * (desired[1] - oy) - DEFLECTION_DAMPING * vy) * dt
        ox += vx * dt
        oy += vy * dt

        # The cap shrinks with end_ease so the token is back on its path when it arrives.
        limit = max_offset * end_ease
        size = math.hypot(ox, oy)
        if size > limit:
            scale = limit / size
            ox *= scale
            oy *= scale

        agent.lateral_offset = Position(ox, oy)
        agent.lateral_offset_velocity = Position(vx, vy)


def create_engine(
    active_roles: Iterable[RoleLike],
    initial_positions: Mapping[RoleLike, Tuple[float, float]],
    locked_paths: Iterable[LockedPathDefinition],
    tuning: TuningLike = None,
    priorities: Optional[Mapping[RoleLike, int]] = None,
) -> PlayEngine:
    """Build a fresh engine for one play."""
    return PlayEngine(active_roles, initial_positions, locked_paths, tuning, priorities)
