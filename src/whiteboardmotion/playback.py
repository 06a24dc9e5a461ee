"""Drive a ``PlayEngine`` from a variable frame clock.

The engine only understands fixed steps. ``FixedStepPlayer`` sits between
it and a renderer: each frame adds the elapsed wall time to an accumulator,
runs as many fixed steps as fit (bounded per frame so a stalled host does
not trigger a burst of work), and blends the last two snapshots with the
leftover fraction so motion looks smooth at any refresh rate.

For reduced-motion playback ``run_to_completion`` skips the animation and
returns only the final snapshot.
"""

from __future__ import annotations
import asyncio
import inspect
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional, Union

from .engine import PlayEngine
from .types import Position, WhiteboardPlaySnapshot

log = logging.getLogger(__name__)


FIXED_DT = 1.0 / 120.0
MAX_SUBSTEPS = 6
MAX_SYNC_STEPS = 15_000


def _lerp(a: float, b: float, alpha: float) -> float:
    return a + (b - a) * alpha


def interpolate_snapshots(
    previous: WhiteboardPlaySnapshot,
    current: WhiteboardPlaySnapshot,
    alpha: float,
) -> WhiteboardPlaySnapshot:
    """Blend two consecutive snapshots for rendering.

    Args:
        previous: Snapshot before the last fixed step.
        current: Snapshot after the last fixed step.
        alpha: Leftover accumulator as a fraction of the fixed step,
            clamped to ``[0, 1]``.

    Returns:
        A new snapshot with positions, distances, speeds, lateral offsets
        and elapsed time blended.
        Roles missing from ``previous`` take their ``current`` values;
        completion flags always come from ``current``.
    """
    alpha = min(1.0, max(0.0, alpha))

    positions = {}
    for role, pos in current.positions.items():
        before = previous.positions.get(role)
        if before is None:
            positions[role] = pos
        else:
            positions[role] = Position(_lerp(before.x, pos.x, alpha), _lerp(before.y, pos.y, alpha))

    agents = {}
    for role, agent in current.agents.items():
        before = previous.agents.get(role)
        if before is None:
            agents[role] = agent
            continue
        agents[role] = replace(
            agent,
            distance=_lerp(before.distance, agent.distance, alpha),
            progress=_lerp(before.progress, agent.progress, alpha),
            current_speed=_lerp(before.current_speed, agent.current_speed, alpha),
            lateral_offset=Position(
                _lerp(before.lateral_offset.x, agent.lateral_offset.x, alpha),
                _lerp(before.lateral_offset.y, agent.lateral_offset.y, alpha),
            ),
        )

    return WhiteboardPlaySnapshot(
        positions=positions,
        agents=agents,
        done=current.done,
        elapsed=_lerp(previous.elapsed, current.elapsed, alpha),
        steps=current.steps,
    )


@dataclass(frozen=True)
class PlaybackFrame:
    """What a renderer needs for one frame.

    Attributes:
        previous: Snapshot before the last fixed step of this frame.
        current: Latest simulated snapshot.
        alpha: Interpolation fraction between ``previous`` and ``current``.
        snapshot: The interpolated state to draw.
        substeps: Fixed steps run during this frame.
    """

    previous: WhiteboardPlaySnapshot
    current: WhiteboardPlaySnapshot
    alpha: float
    snapshot: WhiteboardPlaySnapshot
    substeps: int

    @property
    def done(self) -> bool:
        return self.current.done


class FixedStepPlayer:
    """Fixed-timestep accumulator around one engine.

    Example:
        >>> player = FixedStepPlayer(engine)            # doctest: +SKIP
        >>> frame = player.advance(1 / 60)              # doctest: +SKIP
        >>> frame.substeps                              # doctest: +SKIP
        2
    """

    def __init__(
        self,
        engine: PlayEngine,
        fixed_dt: float = FIXED_DT,
        max_substeps: int = MAX_SUBSTEPS,
    ):
        if not math.isfinite(fixed_dt) or fixed_dt <= 0.0:
            raise ValueError(f"fixed_dt must be a positive number, got {fixed_dt!r}")
        if max_substeps < 1:
            raise ValueError(f"max_substeps must be at least 1, got {max_substeps!r}")

        self.engine = engine
        self.fixed_dt = fixed_dt
        self.max_substeps = max_substeps
        self.accumulator = 0.0
        self._current = engine.get_snapshot()
        self._previous = self._current

    @property
    def done(self) -> bool:
        return self._current.done

    def advance(self, elapsed: float) -> PlaybackFrame:
        """Account for ``elapsed`` wall-clock seconds and return the frame to draw.

        Negative or non-finite ``elapsed`` counts as zero. Backlog beyond
        ``max_substeps`` whole steps is dropped.
        """
        if not math.isfinite(elapsed) or elapsed < 0.0:
            elapsed = 0.0
        self.accumulator += elapsed

        substeps = 0
        while self.accumulator >= self.fixed_dt and substeps < self.max_substeps and not self._current.done:
            self._previous = self._current
            self._current = self.engine.step(self.fixed_dt)
            self.accumulator -= self.fixed_dt
            substeps += 1

        if self._current.done:
            self.accumulator = 0.0
            alpha = 1.0
        else:
            if self.accumulator >= self.fixed_dt:
                log.debug("Frame needed more than %d steps; dropping %.4fs of backlog",
                          self.max_substeps, self.accumulator - math.fmod(self.accumulator, self.fixed_dt))
                self.accumulator = math.fmod(self.accumulator, self.fixed_dt)
            alpha = self.accumulator / self.fixed_dt

        return PlaybackFrame(
            previous=self._previous,
            current=self._current,
            alpha=alpha,
            snapshot=interpolate_snapshots(self._previous, self._current, alpha),
            substeps=substeps,
        )


def run_to_completion(
    engine: PlayEngine,
    fixed_dt: float = FIXED_DT,
    max_steps: int = MAX_SYNC_STEPS,
) -> WhiteboardPlaySnapshot:
    """Step ``engine`` until it is done or ``max_steps`` is reached.

    Used when the viewer prefers reduced motion: only the final state is
    shown. The step ceiling guarantees this returns even for tuning that
    would never let an agent arrive.
    """
    snapshot = engine.get_snapshot()
    steps = 0
    while not snapshot.done and steps < max_steps:
        snapshot = engine.step(fixed_dt)
        steps += 1
    if not snapshot.done:
        log.warning("Play did not finish within %d steps; returning the last state", max_steps)
    return snapshot


def render_frames(
    engine: PlayEngine,
    frame_interval: float = 1.0 / 60.0,
    fixed_dt: float = FIXED_DT,
    max_substeps: int = MAX_SUBSTEPS,
    max_frames: int = MAX_SYNC_STEPS,
) -> List[PlaybackFrame]:
    """Play ``engine`` against an ideal clock ticking every ``frame_interval``.

    The first frame shows the starting state; the last one is done unless
    ``max_frames`` ran out first.
    """
    player = FixedStepPlayer(engine, fixed_dt, max_substeps)
    frames = [player.advance(0.0)]
    while not frames[-1].done and len(frames) < max_frames:
        frames.append(player.advance(frame_interval))
    return frames


FrameCallback = Callable[[PlaybackFrame], Union[None, Awaitable[None]]]


async def play_async(
    engine: PlayEngine,
    on_frame: FrameCallback,
    frame_interval: float = 1.0 / 60.0,
    fixed_dt: float = FIXED_DT,
    max_substeps: int = MAX_SUBSTEPS,
    clock: Callable[[], float] = time.perf_counter,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> WhiteboardPlaySnapshot:
    """Tick loop for hosts without an animation-frame callback.

    Wakes every ``frame_interval`` seconds, feeds the measured elapsed time
    to a ``FixedStepPlayer`` and hands each frame to ``on_frame`` (which may
    be a coroutine function). Cancel the task to stop playback.

    Returns:
        The final simulated snapshot.
    """
    sleep = sleep or asyncio.sleep
    player = FixedStepPlayer(engine, fixed_dt, max_substeps)

    async def emit(frame: PlaybackFrame) -> None:
        result = on_frame(frame)
        if inspect.isawaitable(result):
            await result

    frame = player.advance(0.0)
    await emit(frame)
    last = clock()
    while not frame.done:
        await sleep(frame_interval)
        now = clock()
        frame = player.advance(now - last)
        last = now
        await emit(frame)
    return frame.current
