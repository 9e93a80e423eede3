"""
2D Pool Physics Engine
Per-frame integration, pocket capture, rail bounce, ball-ball collision.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# ──────────────────────────────────────────────
# Constants (pixel units, one tick = one frame)
# ──────────────────────────────────────────────
BALL_RADIUS: float = 10.5
POCKET_RADIUS: float = 23.0
RAIL_WIDTH: float = 30.0
CANVAS_WIDTH: float = 900.0
CANVAS_HEIGHT: float = 500.0
MID_POCKET_OFFSET: float = 2.0   # mid-rail pockets sit slightly outside the cloth

CUE_COLOR: str = "#ffffff"
BALL_PALETTE: Tuple[str, ...] = (
    "#ffd700", "#ff4d4d", "#4dd2ff", "#9b59b6", "#2ecc71",
    "#e67e22", "#ecf0f1", "#f1c40f", "#3498db", "#e74c3c",
)

# ── Runtime-editable behavior constants ───────────────────────────────────────
# These are read by name every call, so server.py can mutate them live via:
#   import physics as _phys;  _phys.DAMPING = 0.99
DAMPING: float = 0.992          # velocity multiplier per tick
STOP_THRESHOLD: float = 0.02    # per-component snap-to-zero speed
MOTION_EPSILON: float = 0.01    # rest predicate threshold
MAX_SPEED: float = 26.0         # cue ball speed at full power (px/tick)


# ──────────────────────────────────────────────
# Table geometry
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class Table:
    """Immutable table geometry. Pockets: 4 corners + 2 mid-rail."""
    x: float = RAIL_WIDTH
    y: float = RAIL_WIDTH
    w: float = CANVAS_WIDTH - 2 * RAIL_WIDTH
    h: float = CANVAS_HEIGHT - 2 * RAIL_WIDTH
    pocket_radius: float = POCKET_RADIUS
    ball_radius: float = BALL_RADIUS
    pockets: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.w <= 0 or self.h <= 0:
            raise ValueError(f"Table: size must be positive, got {self.w}x{self.h}")
        if not 0 < self.ball_radius < self.pocket_radius:
            raise ValueError(
                f"Table: ball_radius ({self.ball_radius}) must be positive and "
                f"smaller than pocket_radius ({self.pocket_radius})")
        x, y, w, h = self.x, self.y, self.w, self.h
        pockets = np.array([
            [x,         y],
            [x + w / 2, y - MID_POCKET_OFFSET],
            [x + w,     y],
            [x,         y + h],
            [x + w / 2, y + h + MID_POCKET_OFFSET],
            [x + w,     y + h],
        ], dtype=float)
        pockets.setflags(write=False)
        object.__setattr__(self, "pockets", pockets)

    def bounds(self, r: float) -> Tuple[float, float, float, float]:
        """Inset (left, right, top, bottom) limits for a ball centre of radius r."""
        return (self.x + r, self.x + self.w - r, self.y + r, self.y + self.h - r)

    def contains(self, px: float, py: float) -> bool:
        return self.x < px < self.x + self.w and self.y < py < self.y + self.h

    def clamp_center(self, px: float, py: float, r: float) -> Tuple[float, float]:
        left, right, top, bottom = self.bounds(r)
        return min(max(px, left), right), min(max(py, top), bottom)

    def to_dict(self) -> dict:
        return {
            "x": self.x, "y": self.y, "w": self.w, "h": self.h,
            "pocket_radius": self.pocket_radius,
            "ball_radius": self.ball_radius,
            "pockets": self.pockets.tolist(),
        }


# ──────────────────────────────────────────────
# Ball entity
# ──────────────────────────────────────────────
@dataclass
class Ball:
    """Pool ball on a 2D table."""
    ball_id: int
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    radius: float = BALL_RADIUS
    is_cue: bool = False
    pocketed: bool = False
    color: str = CUE_COLOR

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_moving(self) -> bool:
        if self.pocketed:
            return False
        return bool(np.any(np.abs(self.velocity) > MOTION_EPSILON))

    def stop(self) -> None:
        self.velocity[:] = 0.0


# ──────────────────────────────────────────────
# Events emitted by a tick
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class PocketCapture:
    ball_id: int
    was_cue: bool
    pocket_index: int = -1
    kind: str = field(default="pocket", init=False)


@dataclass(frozen=True)
class RailBounce:
    ball_id: int
    side: str
    kind: str = field(default="rail", init=False)


@dataclass(frozen=True)
class BallCollision:
    id_a: int
    id_b: int
    kind: str = field(default="ball_ball", init=False)


@dataclass(frozen=True)
class ShotFired:
    """Emitted by the controller (not the engine) when a shot leaves the cue."""
    power: float
    kind: str = field(default="shot", init=False)


def any_moving(balls: List[Ball]) -> bool:
    return any(b.is_moving() for b in balls)


class PhysicsEngine:
    """Fixed-step pool physics: one update() call == one frame."""

    def __init__(self, table: Optional[Table] = None):
        self.table = table if table is not None else Table()
        self.events: list = []

    @staticmethod
    def validate(balls: List[Ball]) -> None:
        if not balls:
            raise ValueError("PhysicsEngine: ball registry is empty")
        cues = sum(1 for b in balls if b.is_cue)
        if cues != 1:
            raise ValueError(f"PhysicsEngine: expected exactly one cue ball, found {cues}")

    # ──────────────────────────────────────────
    # 1. Integration + damping
    # ──────────────────────────────────────────
    @staticmethod
    def _integrate(ball: Ball) -> None:
        ball.position = ball.position + ball.velocity
        ball.velocity = ball.velocity * DAMPING
        ball.velocity[np.abs(ball.velocity) < STOP_THRESHOLD] = 0.0

    # ──────────────────────────────────────────
    # 2. Pocket capture
    # ──────────────────────────────────────────
    def _check_pocket(self, ball: Ball) -> Optional[PocketCapture]:
        """Capture into the nearest pocket whose mouth contains the ball centre."""
        dists = np.linalg.norm(self.table.pockets - ball.position, axis=1)
        idx = int(np.argmin(dists))
        if dists[idx] >= self.table.pocket_radius:
            return None
        ball.pocketed = True
        ball.stop()
        return PocketCapture(ball.ball_id, ball.is_cue, idx)

    # ──────────────────────────────────────────
    # 3. Rail collision
    # ──────────────────────────────────────────
    def _check_rails(self, ball: Ball) -> List[RailBounce]:
        """Clamp to the inset bounds; each side is checked independently."""
        left, right, top, bottom = self.table.bounds(ball.radius)
        bounces = []
        if ball.position[0] < left:
            ball.position[0] = left
            ball.velocity[0] = -ball.velocity[0]
            bounces.append(RailBounce(ball.ball_id, "left"))
        if ball.position[0] > right:
            ball.position[0] = right
            ball.velocity[0] = -ball.velocity[0]
            bounces.append(RailBounce(ball.ball_id, "right"))
        if ball.position[1] < top:
            ball.position[1] = top
            ball.velocity[1] = -ball.velocity[1]
            bounces.append(RailBounce(ball.ball_id, "top"))
        if ball.position[1] > bottom:
            ball.position[1] = bottom
            ball.velocity[1] = -ball.velocity[1]
            bounces.append(RailBounce(ball.ball_id, "bottom"))
        return bounces

    # ──────────────────────────────────────────
    # 4. Ball-Ball collision
    # ──────────────────────────────────────────
    @staticmethod
    def _resolve_ball_collision(a: Ball, b: Ball) -> Optional[BallCollision]:
        """
        Equal-mass elastic collision along the line of centres.
        Overlap is split evenly between the two balls, then the normal
        velocity components are exchanged. Coincident centres are skipped.
        """
        diff = b.position - a.position
        dist = float(np.linalg.norm(diff))
        min_dist = a.radius + b.radius
        if not 0.0 < dist < min_dist:
            return None

        normal = diff / dist
        overlap = (min_dist - dist) / 2
        a.position = a.position - normal * overlap
        b.position = b.position + normal * overlap

        # 1D elastic formula with m_a == m_b reduces to p = va_n - vb_n
        p = float(np.dot(a.velocity, normal) - np.dot(b.velocity, normal))
        a.velocity = a.velocity - p * normal
        b.velocity = b.velocity + p * normal
        return BallCollision(a.ball_id, b.ball_id)

    # ──────────────────────────────────────────
    # Main Update Loop
    # ──────────────────────────────────────────
    def update(self, balls: List[Ball]) -> list:
        """Advance the simulation by exactly one tick and return its events."""
        self.events = []

        for ball in balls:
            if not ball.pocketed:
                self._integrate(ball)

        for ball in balls:
            if ball.pocketed:
                continue
            capture = self._check_pocket(ball)
            if capture is not None:
                self.events.append(capture)
                continue
            self.events.extend(self._check_rails(ball))

        for i in range(len(balls)):
            for j in range(i + 1, len(balls)):
                a, b = balls[i], balls[j]
                if a.pocketed or b.pocketed:
                    continue
                hit = self._resolve_ball_collision(a, b)
                if hit is not None:
                    self.events.append(hit)

        return self.events

    def simulate(self, balls: List[Ball], max_ticks: int = 10000) -> Tuple[int, list]:
        """
        Run ticks until all balls stop or max_ticks is reached.

        Returns:
            (ticks run, every event emitted along the way)
        """
        self.validate(balls)
        history = []
        ticks = 0
        while ticks < max_ticks:
            history.extend(self.update(balls))
            ticks += 1
            if not any_moving(balls):
                break
        return ticks, history


def aim_guide(origin, drag, max_len: float) -> Optional[Tuple[float, float, float, float]]:
    """Guide segment from origin, opposite to the drag vector, or None for a zero drag."""
    length = math.hypot(drag[0], drag[1])
    if length == 0.0:
        return None
    nx, ny = drag[0] / length, drag[1] / length
    guide = min(max_len, length)
    return (float(origin[0]), float(origin[1]),
            float(origin[0] - nx * guide), float(origin[1] - ny * guide))
