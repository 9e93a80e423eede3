"""
Session state + scoring reducer.

GameState is passed by reference into the controller and the reducer;
there is no module-level game state.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from physics import Ball, PocketCapture, ShotFired

# ── Runtime-editable scoring constants ────────────────────────────────────────
POT_REWARD: int = 100
SCRATCH_PENALTY: int = 200

STATUS_READY   = "Aim, click & drag to shoot"
STATUS_SCRATCH = "Scratch! Place cue ball (ball in hand) - tap/click on table."


@dataclass
class GameState:
    balls: List[Ball] = field(default_factory=list)
    score: int = 0
    shots: int = 0
    cue_ready: bool = True
    status: str = STATUS_READY
    cue_index: int = 0

    @property
    def cue_ball(self) -> Optional[Ball]:
        if not self.balls:
            return None
        return self.balls[self.cue_index]

    @property
    def ball_in_hand(self) -> bool:
        cue = self.cue_ball
        return cue is not None and cue.pocketed

    def hud(self) -> dict:
        return {"type": "update_hud", "score": self.score,
                "shots": self.shots, "status": self.status}


def apply_event(state: GameState, event) -> bool:
    """Fold one physics/controller event into the session. Returns True if changed."""
    if isinstance(event, PocketCapture):
        if event.was_cue:
            state.score -= SCRATCH_PENALTY
            state.status = STATUS_SCRATCH
            print(f"[SCRATCH] cue ball pocketed  score={state.score}")
        else:
            state.score += POT_REWARD
        return True
    if isinstance(event, ShotFired):
        state.shots += 1
        return True
    return False


def apply_events(state: GameState, events) -> bool:
    changed = False
    for ev in events:
        changed = apply_event(state, ev) or changed
    return changed
