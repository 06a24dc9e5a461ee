import asyncio
import logging

import pytest
from whiteboardmotion.engine import PlayEngine, create_engine
from whiteboardmotion.playback import (
    FIXED_DT,
    MAX_SUBSTEPS,
    FixedStepPlayer,
    interpolate_snapshots,
    play_async,
    render_frames,
    run_to_completion,
)
from whiteboardmotion.roles import Role
from whiteboardmotion.types import AgentSnapshot, LockedPathDefinition, Position, WhiteboardPlaySnapshot


def make_engine():
    paths = [
        LockedPathDefinition(Role.S, Position(0.2, 0.5), Position(0.8, 0.5)),
        LockedPathDefinition(Role.OPP, Position(0.5, 0.2), Position(0.5, 0.8)),
    ]
    return create_engine(
        active_roles=[Role.S, Role.OPP],
        initial_positions={p.role: p.start for p in paths},
        locked_paths=paths,
    )


def snapshot_at(x, distance, elapsed, done=False, offset=(0.0, 0.0), speed=0.5):
    agent = AgentSnapshot(
        role=Role.S, distance=distance, length=1.0, progress=distance,
        current_speed=speed, target_speed=0.5, lateral_offset=Position(*offset), done=done,
    )
    return WhiteboardPlaySnapshot(
        positions={Role.S: Position(x, 0.5)}, agents={Role.S: agent}, done=done, elapsed=elapsed,
    )


# --------------------- interpolate_snapshots ---------------------

def test_interpolate_halfway():
    blended = interpolate_snapshots(snapshot_at(0.2, 0.1, 1.0), snapshot_at(0.4, 0.3, 2.0), 0.5)
    assert blended.positions[Role.S] == pytest.approx((0.3, 0.5))
    assert blended.agents[Role.S].distance == pytest.approx(0.2)
    assert blended.elapsed == pytest.approx(1.5)


def test_interpolate_blends_agent_readout():
    """Offset and speed follow the drawn position, not the latest step."""
    before = snapshot_at(0.2, 0.1, 1.0, offset=(0.0, 0.02), speed=0.4)
    after = snapshot_at(0.4, 0.3, 2.0, offset=(0.0, 0.06), speed=0.6)

    agent = interpolate_snapshots(before, after, 0.25).agents[Role.S]

    assert agent.lateral_offset == pytest.approx((0.0, 0.03))
    assert agent.current_speed == pytest.approx(0.45)
    assert agent.target_speed == 0.5


def test_interpolate_clamps_alpha():
    a, b = snapshot_at(0.2, 0.1, 1.0), snapshot_at(0.4, 0.3, 2.0)
    assert interpolate_snapshots(a, b, -3).positions == a.positions
    assert interpolate_snapshots(a, b, 7).positions[Role.S] == pytest.approx(b.positions[Role.S])


def test_interpolate_new_roles_take_current_value():
    empty = WhiteboardPlaySnapshot()
    current = snapshot_at(0.4, 0.3, 2.0)
    blended = interpolate_snapshots(empty, current, 0.25)
    assert blended.positions == current.positions
    assert blended.agents == current.agents


# --------------------- FixedStepPlayer ---------------------

@pytest.mark.parametrize("kwargs", [{"fixed_dt": 0.0}, {"fixed_dt": float("nan")}, {"max_substeps": 0}])
def test_player_rejects_bad_settings(kwargs):
    with pytest.raises(ValueError):
        FixedStepPlayer(make_engine(), **kwargs)


def test_sixty_hz_frame_runs_two_steps():
    player = FixedStepPlayer(make_engine())
    frame = player.advance(1.0 / 60.0)
    assert frame.substeps == 2
    assert frame.alpha == pytest.approx(0.0)
    assert frame.current.steps == 2


def test_short_frames_accumulate():
    player = FixedStepPlayer(make_engine())
    first = player.advance(FIXED_DT / 2)
    assert first.substeps == 0
    assert first.alpha == pytest.approx(0.5)

    second = player.advance(FIXED_DT / 2)
    assert second.substeps == 1
    assert second.alpha == pytest.approx(0.0)


def test_stall_is_capped(caplog):
    player = FixedStepPlayer(make_engine())
    with caplog.at_level(logging.DEBUG, logger="whiteboardmotion.playback"):
        frame = player.advance(1.0)
    assert frame.substeps == MAX_SUBSTEPS
    assert 0.0 <= player.accumulator < FIXED_DT
    assert "dropping" in caplog.text


def test_negative_elapsed_counts_as_zero():
    player = FixedStepPlayer(make_engine())
    frame = player.advance(-5.0)
    assert frame.substeps == 0
    assert player.accumulator == 0.0


def test_frame_snapshot_is_blend_of_last_two_steps():
    player = FixedStepPlayer(make_engine())
    player.advance(0.25)
    frame = player.advance(FIXED_DT * 1.5)
    expected = interpolate_snapshots(frame.previous, frame.current, frame.alpha)
    assert frame.snapshot == expected
    assert frame.alpha == pytest.approx(0.5)


def test_result_independent_of_frame_rate():
    """Same fixed steps, same final state, whatever the display does."""
    slow = render_frames(make_engine(), frame_interval=1.0 / 30.0)
    fast = render_frames(make_engine(), frame_interval=1.0 / 144.0)
    assert slow[-1].done and fast[-1].done
    assert slow[-1].current == fast[-1].current
    assert len(fast) > len(slow)


def test_render_frames_starts_at_rest():
    frames = render_frames(make_engine())
    assert frames[0].substeps == 0
    assert frames[0].snapshot.elapsed == 0.0
    assert frames[-1].done
    assert frames[-1].alpha == 1.0


def test_render_frames_respects_frame_limit():
    frames = render_frames(make_engine(), max_frames=3)
    assert len(frames) == 3
    assert not frames[-1].done


# --------------------- run_to_completion ---------------------

def test_run_to_completion_finishes():
    final = run_to_completion(make_engine())
    assert final.done
    assert final.positions[Role.S] == (0.8, 0.5)


def test_run_to_completion_matches_animated_playback():
    assert run_to_completion(make_engine()) == render_frames(make_engine())[-1].current


def test_run_to_completion_stops_at_ceiling(mocker, caplog):
    engine = mocker.Mock(spec=PlayEngine)
    stuck = WhiteboardPlaySnapshot(done=False)
    engine.get_snapshot.return_value = stuck
    engine.step.return_value = stuck

    with caplog.at_level(logging.WARNING, logger="whiteboardmotion.playback"):
        result = run_to_completion(engine, max_steps=25)

    assert result is stuck
    assert engine.step.call_count == 25
    assert "did not finish" in caplog.text


# --------------------- play_async ---------------------

class FakeClock:
    def __init__(self, tick):
        self.now = 0.0
        self.tick = tick

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.now += self.tick


def test_play_async_drives_engine_to_completion():
    clock = FakeClock(1.0 / 60.0)
    frames = []

    final = asyncio.run(play_async(make_engine(), frames.append, clock=clock, sleep=clock.sleep))

    assert final.done
    assert frames[-1].done
    assert frames[0].substeps == 0
    assert all(f.substeps <= MAX_SUBSTEPS for f in frames)
    assert final == run_to_completion(make_engine())


def test_play_async_awaits_coroutine_callbacks():
    clock = FakeClock(1.0 / 30.0)
    seen = []

    async def on_frame(frame):
        seen.append(frame.current.steps)

    asyncio.run(play_async(make_engine(), on_frame, clock=clock, sleep=clock.sleep))

    assert seen == sorted(seen)
    assert len(seen) > 2
