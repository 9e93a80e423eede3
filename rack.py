"""
Rack builder.
Places the cue ball and a 10-ball triangle at the same spots every call,
so new_game() / reset_rack() are deterministic.
"""

from typing import List

from physics import Ball, Table, BALL_PALETTE, CUE_COLOR

RACK_SIZE = 10
RACK_ROWS = 4
CUE_SPOT = (0.25, 0.5)       # fractions of table width / height
APEX_SPOT = (0.72, 0.5)
RACK_GAP_EXTRA = 1.5         # spacing between neighbouring balls beyond 2r


def cue_spot(table: Table):
    return (table.x + table.w * CUE_SPOT[0], table.y + table.h * CUE_SPOT[1])


def rack_positions(table: Table) -> List[tuple]:
    """Triangle centres, apex toward the cue ball, rows of 1-2-3-4."""
    gap = table.ball_radius * 2 + RACK_GAP_EXTRA
    start_x = table.x + table.w * APEX_SPOT[0]
    start_y = table.y + table.h * APEX_SPOT[1]
    positions = []
    for row in range(RACK_ROWS):
        count = row + 1
        for i in range(count):
            positions.append((start_x + row * gap,
                              start_y - (count - 1) * gap / 2 + i * gap))
    return positions[:RACK_SIZE]


def build_rack(table: Table) -> List[Ball]:
    """Fresh registry: index 0 is the cue ball, then the object balls."""
    balls = [Ball(0, position=cue_spot(table), radius=table.ball_radius,
                  is_cue=True, color=CUE_COLOR)]
    for n, pos in enumerate(rack_positions(table)):
        balls.append(Ball(n + 1, position=pos, radius=table.ball_radius,
                          color=BALL_PALETTE[n % len(BALL_PALETTE)]))
    return balls
