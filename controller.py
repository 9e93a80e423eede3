"""
PoolController — Layer 2 (Game Logic)

Owns the game state, the aim state machine and the per-frame tick.
Communicates with Layer 3 (server.py / canvas client) via two queues:
  - pending_events  : HUD updates ({"type": "update_hud", ...})
  - sound_events    : sound cues for fire-and-forget playback

Layer 3 calls:
  ctrl.step()                         — advance physics + session once per frame
  ctrl.pointer_down/move/up(x, y)     — table-local pointer input
  ctrl.new_game() / ctrl.reset_rack() — lifecycle commands
  ctrl.snapshot()                     — render state (table, balls, aim)
"""

import enum
import math
from typing import Optional

from physics import PhysicsEngine, Table, ShotFired, any_moving, aim_guide
import physics as _phys
from rack import build_rack
from session import GameState, apply_events, STATUS_READY, STATUS_SCRATCH
from audio import sound_message


class AimMode(enum.Enum):
    IDLE = 0
    DRAGGING = 1
    BALL_IN_HAND = 2


class PoolController:
    """Layer 2: aim state machine + physics/session orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    MIN_DRAG            = 4.0     # shorter release is a cancelled tap
    POWER_BAR_DISTANCE  = 200.0   # drag distance for a full power bar
    SHOT_POWER_DISTANCE = 220.0   # drag distance for full shot power
    AIM_GUIDE_MAX       = 140.0

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, table: Optional[Table] = None):
        self.table  = table if table is not None else Table()
        self.engine = PhysicsEngine(self.table)
        self.state  = GameState()

        # Aiming
        self.mode = AimMode.IDLE
        self.aim_anchor: Optional[tuple] = None
        self.pointer = (0.0, 0.0)
        self.aim_power = 0.0

        self.sounds_on = True

        # Event queues
        self.pending_events: list[dict] = []   # L3 HUD commands
        self.sound_events: list[dict] = []     # sound cues

        self.new_game()

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self) -> list:
        """Advance one tick. Called every frame by the tick source."""
        events = self.engine.update(self.state.balls)
        self._consume(events)

        if not self.state.cue_ready and not any_moving(self.state.balls):
            self.state.cue_ready = True
            self.state.status = STATUS_SCRATCH if self.state.ball_in_hand else STATUS_READY
            self._push_hud()
        return events

    def run(self, tick_source) -> None:
        for _ in tick_source:
            self.step()

    def _consume(self, events) -> None:
        if apply_events(self.state, events):
            self._push_hud()
        if self.state.ball_in_hand and self.mode != AimMode.BALL_IN_HAND:
            self.mode = AimMode.BALL_IN_HAND
            self.aim_anchor = None
            self.aim_power = 0.0
        if self.sounds_on:
            for ev in events:
                msg = sound_message(ev)
                if msg is not None:
                    self.sound_events.append(msg)

    def _push_hud(self) -> None:
        self.pending_events.append(self.state.hud())

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def _rerack(self, status: str) -> None:
        """Replace the whole registry with a fresh rack."""
        self.state.balls = build_rack(self.table)
        self.engine.validate(self.state.balls)
        self.state.cue_index = 0
        self.state.cue_ready = True
        self.mode = AimMode.IDLE
        self.aim_anchor = None
        self.aim_power = 0.0
        self.state.status = status
        print(f"[RACK] {len(self.state.balls)} balls  score={self.state.score}  "
              f"shots={self.state.shots}")
        self._push_hud()

    def reset_rack(self) -> None:
        """Re-rack without touching score or shot count."""
        self._rerack("Balls re-racked.")

    def new_game(self) -> None:
        self.state.score = 0
        self.state.shots = 0
        self._rerack("New game started.")

    def toggle_sound(self, on: Optional[bool] = None) -> bool:
        self.sounds_on = (not self.sounds_on) if on is None else bool(on)
        if not self.sounds_on:
            self.sound_events.clear()
        return self.sounds_on

    # ──────────────────────────────────────────────────────────────────────────
    # Pointer input
    # ──────────────────────────────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float) -> None:
        self.pointer = (x, y)
        if self.state.ball_in_hand:
            self.mode = AimMode.BALL_IN_HAND
            if self.table.contains(x, y):
                self.place_cue_ball(x, y)
            return
        if not any_moving(self.state.balls):
            self.mode = AimMode.DRAGGING
            self.aim_anchor = (x, y)
            self.state.status = "Dragging... release to shoot"
            self._push_hud()

    def pointer_move(self, x: float, y: float) -> None:
        self.pointer = (x, y)
        if self.mode == AimMode.DRAGGING and self.aim_anchor is not None:
            dist = math.hypot(x - self.aim_anchor[0], y - self.aim_anchor[1])
            self.aim_power = min(1.0, dist / self.POWER_BAR_DISTANCE)

    def pointer_up(self, x: Optional[float] = None, y: Optional[float] = None) -> bool:
        """Release. Missing coordinates fall back to the last pointer position.

        Returns True if a shot was fired.
        """
        if x is None or y is None:
            x, y = self.pointer
        if self.mode != AimMode.DRAGGING or self.aim_anchor is None:
            return False
        anchor = self.aim_anchor
        self.mode = AimMode.IDLE
        self.aim_anchor = None
        self.aim_power = 0.0

        cue = self.state.cue_ball
        if cue.pocketed:
            return False
        dx, dy = x - anchor[0], y - anchor[1]
        length = math.hypot(dx, dy)
        if length < self.MIN_DRAG:
            self.state.status = "Tiny shot ignored."
            self._push_hud()
            return False
        self.fire_shot(dx / length, dy / length,
                       min(1.0, length / self.SHOT_POWER_DISTANCE))
        return True

    # ──────────────────────────────────────────────────────────────────────────
    # Shooting / placement
    # ──────────────────────────────────────────────────────────────────────────

    def fire_shot(self, nx: float, ny: float, power: float) -> None:
        """Slingshot: the cue ball travels opposite the unit drag (nx, ny)."""
        cue = self.state.cue_ball
        speed = _phys.MAX_SPEED * power
        cue.velocity[0] = -nx * speed
        cue.velocity[1] = -ny * speed
        self.state.cue_ready = False
        self.state.status = "Shooting..."
        print(f"[SHOT] power={power:.3f}  v=({cue.velocity[0]:.2f},{cue.velocity[1]:.2f})")
        self._consume([ShotFired(power)])

    def place_cue_ball(self, x: float, y: float) -> None:
        """Ball in hand: drop the cue ball at the clamped point."""
        cue = self.state.cue_ball
        cx, cy = self.table.clamp_center(x, y, cue.radius)
        cue.pocketed = False
        cue.position[0] = cx
        cue.position[1] = cy
        cue.stop()
        self.mode = AimMode.IDLE
        self.state.status = "Cue ball placed. Aim & shoot."
        print(f"[PLACE] cue ball -> ({cx:.1f},{cy:.1f})")
        self._push_hud()

    # ──────────────────────────────────────────────────────────────────────────
    # Render state
    # ──────────────────────────────────────────────────────────────────────────

    def aim_vector(self):
        if self.mode != AimMode.DRAGGING or self.aim_anchor is None:
            return None
        cue = self.state.cue_ball
        if cue.pocketed or not self.state.cue_ready or any_moving(self.state.balls):
            return None
        drag = (self.pointer[0] - self.aim_anchor[0], self.pointer[1] - self.aim_anchor[1])
        return aim_guide(cue.position, drag, self.AIM_GUIDE_MAX)

    def snapshot(self) -> dict:
        balls_data = []
        for b in self.state.balls:
            balls_data.append({
                "id": b.ball_id,
                "x": round(float(b.position[0]), 3),
                "y": round(float(b.position[1]), 3),
                "r": b.radius,
                "color": b.color,
                "is_cue": b.is_cue,
                "pocketed": b.pocketed,
            })
        aim = self.aim_vector()
        return {
            "table": self.table.to_dict(),
            "balls": balls_data,
            "aim": None if aim is None else [round(v, 3) for v in aim],
            "power": round(self.aim_power, 4),
            "mode": self.mode.name,
            "score": self.state.score,
            "shots": self.state.shots,
            "status": self.state.status,
            "cue_ready": self.state.cue_ready,
        }
