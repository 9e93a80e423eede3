"""
Tick sources that drive PoolController.step().

FixedTicker: yields a fixed number of ticks immediately (tests, headless runs).
PacedTicker: async iterator paced to a target frame rate (server loop).
"""

import asyncio
import time


class FixedTicker:
    """Deterministic tick source: n ticks of a nominal frame length, no waiting."""

    def __init__(self, n: int, dt: float = 1.0 / 60):
        self.n = n
        self.dt = dt

    def __iter__(self):
        for _ in range(self.n):
            yield self.dt


class PacedTicker:
    """Real-time tick source for the asyncio game loop."""

    MAX_DT = 0.05   # clamp dt to avoid spiral-of-death

    def __init__(self, fps: int = 60):
        self.frame_dt = 1.0 / fps
        self._last = None
        self._frame_start = None

    def __aiter__(self):
        self._last = time.perf_counter()
        return self

    async def __anext__(self) -> float:
        if self._frame_start is not None:
            # Sleep off whatever is left of the previous frame
            elapsed = time.perf_counter() - self._frame_start
            sleep_time = self.frame_dt - elapsed
            await asyncio.sleep(sleep_time if sleep_time > 0 else 0)

        now = time.perf_counter()
        dt = min(now - self._last, self.MAX_DT)
        self._last = now
        self._frame_start = now
        return dt
