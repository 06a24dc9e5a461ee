from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .engine import create_engine
from .layout import relax_layout
from .planner import lock_paths
from .playback import FIXED_DT, MAX_SUBSTEPS, render_frames, run_to_completion
from .roles import Role
from .tuning import DEFAULT_TUNING, MotionTuning, sanitize_tuning, tuning_from_preset
from .types import LockedPathDefinition, Position
import logging

log = logging.getLogger(__name__)


app = FastAPI(title="Whiteboard Motion API", version="1.0.0")

# Optional server-wide preset; request tuning overrides it field by field.
BASE_TUNING: MotionTuning = tuning_from_preset(os.getenv("WHITEBOARD_TUNING_PRESET"))


def _merged_tuning(overrides: Optional[Dict[str, float]]) -> MotionTuning:
    if not overrides:
        return BASE_TUNING
    return BASE_TUNING.updated(**overrides)


class PathModel(BaseModel):
    role: Role
    start: Tuple[float, float]
    end: Tuple[float, float]
    control: Optional[Tuple[float, float]] = None

    def to_definition(self) -> LockedPathDefinition:
        return LockedPathDefinition(
            role=self.role,
            start=Position(*self.start),
            end=Position(*self.end),
            control=Position(*self.control) if self.control is not None else None,
        )


class PlanRequest(BaseModel):
    positions: Dict[Role, Tuple[float, float]]
    targets: Dict[Role, Tuple[float, float]]
    overrides: Dict[Role, Tuple[float, float]] = Field(default_factory=dict)
    tuning: Optional[Dict[str, float]] = None


class PlayRequest(BaseModel):
    active_roles: List[Role]
    positions: Dict[Role, Tuple[float, float]]
    paths: List[PathModel]
    tuning: Optional[Dict[str, float]] = None
    priorities: Optional[Dict[Role, int]] = None

    # Playback knobs
    frame_rate: float = Field(default=60.0, gt=0.0, le=240.0)
    fixed_dt: float = Field(default=FIXED_DT, gt=0.0, le=0.1)
    max_substeps: int = Field(default=MAX_SUBSTEPS, ge=1, le=32)
    reduced_motion: bool = False


class RelaxRequest(BaseModel):
    homes: Dict[Role, Tuple[float, float]]
    dragged: Optional[Role] = None
    tuning: Optional[Dict[str, float]] = None


@app.get("/api/ping")
async def ping():
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}


@app.get("/api/tuning/default")
async def default_tuning():
    return {"defaults": DEFAULT_TUNING, "active": BASE_TUNING.model_dump()}


@app.post("/api/tuning/sanitize")
async def sanitize(values: Dict[str, Any]):
    # Debug-panel input is untrusted; anything unusable falls back to the default.
    return sanitize_tuning(values).model_dump()


@app.post("/api/plan")
async def plan(req: PlanRequest):
    try:
        locked = lock_paths(
            req.targets,
            req.positions,
            tuning=_merged_tuning(req.tuning),
            overrides=req.overrides,
        )
        return {"paths": [definition.to_dict() for definition in locked]}
    except Exception as e:
        log.exception("Path planning failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/play")
async def play(req: PlayRequest):
    try:
        engine = create_engine(
            active_roles=req.active_roles,
            initial_positions=req.positions,
            locked_paths=[path.to_definition() for path in req.paths],
            tuning=_merged_tuning(req.tuning),
            priorities=req.priorities,
        )
        if req.reduced_motion:
            final = run_to_completion(engine, fixed_dt=req.fixed_dt)
            return {"frames": [], "final": final.to_dict()}

        frames = render_frames(
            engine,
            frame_interval=1.0 / req.frame_rate,
            fixed_dt=req.fixed_dt,
            max_substeps=req.max_substeps,
        )
        return {
            "frames": [frame.snapshot.to_dict() for frame in frames],
            "final": frames[-1].current.to_dict(),
        }
    except Exception as e:
        log.exception("Play simulation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/layout/relax")
async def relax(req: RelaxRequest):
    try:
        positions = relax_layout(req.homes, tuning=_merged_tuning(req.tuning), dragged=req.dragged)
        return {"positions": {role.value: pos.to_dict() for role, pos in positions.items()}}
    except Exception as e:
        log.exception("Layout relaxation failed")
        raise HTTPException(status_code=500, detail=str(e))


def main():
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=int(os.getenv("PORT", 8002)))

if __name__ == "__main__":
    main()
