"""Plain value types shared by the planner, the engine and its hosts.

Positions live in normalized court space: ``(0, 0)`` is one corner of the
court and ``(1, 1)`` the opposite one. Off-court placements may stray a
little outside that square.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, NamedTuple, Optional

from .roles import Role


class Position(NamedTuple):
    """A point in normalized court space."""

    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class LockedPathDefinition:
    """The start/control/end triple captured for one role at play start.

    A ``control`` of ``None`` means a straight line.
    """

    role: Role
    start: Position
    end: Position
    control: Optional[Position] = None

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "control": self.control.to_dict() if self.control is not None else None,
        }


@dataclass(frozen=True)
class AgentSnapshot:
    role: Role
    distance: float
    length: float
    progress: float
    current_speed: float
    target_speed: float
    lateral_offset: Position
    done: bool

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "distance": self.distance,
            "length": self.length,
            "progress": self.progress,
            "current_speed": self.current_speed,
            "target_speed": self.target_speed,
            "lateral_offset": self.lateral_offset.to_dict(),
            "done": self.done,
        }


@dataclass(frozen=True)
class WhiteboardPlaySnapshot:
    """Point-in-time readout of a play.

    ``positions`` holds every token the engine knows about (moving agents
    and stationary roles); ``agents`` only holds the moving ones. A new
    snapshot is built for every call, so holding on to one is safe.
    """

    positions: Dict[Role, Position] = field(default_factory=dict)
    agents: Dict[Role, AgentSnapshot] = field(default_factory=dict)
    done: bool = True
    elapsed: float = 0.0
    steps: int = 0

    def to_dict(self) -> dict:
        return {
            "positions": {role.value: pos.to_dict() for role, pos in self.positions.items()},
            "agents": {role.value: agent.to_dict() for role, agent in self.agents.items()},
            "done": self.done,
            "elapsed": self.elapsed,
            "steps": self.steps,
        }
