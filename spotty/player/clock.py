"""Local estimate of how far into the current track playback is.

Polling the Web API for the playback position every second would be slow
and rate limited, so the player keeps its own clock: it remembers the
instant playback (notionally) started and derives elapsed time from it.
Pause, resume and seek only move that instant. The estimate can drift
from the real player by up to one tick, which is fine for a progress bar.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from spotty.utils import create_task

logger = logging.getLogger(__name__)

# Seconds between progress ticks
TICK_INTERVAL = 1.0


@dataclass(frozen=True)
class ClockState:
    """Everything needed to put a clock back where it was."""

    duration_ms: int
    started_at: float | None
    offset_ms: int


class PlaybackClock:
    """Elapsed-time estimate with a periodic tick while running."""

    def __init__(
        self,
        duration_ms: int = 0,
        *,
        on_tick: Callable[[int], None] | None = None,
        interval: float = TICK_INTERVAL,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize a stopped clock.

        Args:
            duration_ms: Length of the current track.
            on_tick: Called on the event loop with the elapsed milliseconds
                every `interval` seconds while running.
            interval: Tick period in seconds.
            time_func: Monotonic time source in seconds.
        """
        self._duration_ms = max(0, duration_ms)
        self._on_tick = on_tick
        self._interval = interval
        self._time = time_func
        self._started_at: float | None = None
        self._offset_ms = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    def set_tick_callback(self, on_tick: Callable[[int], None] | None) -> None:
        """Replace the tick callback; takes effect on the next tick."""
        self._on_tick = on_tick

    @property
    def running(self) -> bool:
        """Whether the clock is advancing."""
        return self._started_at is not None

    @property
    def ticking(self) -> bool:
        """Whether the tick task is alive."""
        return self._task is not None and not self._task.done()

    def _now_ms(self) -> float:
        return self._time() * 1000

    def raw_elapsed_ms(self) -> int:
        """Elapsed time, not clamped to the track length."""
        if self._started_at is None:
            return self._offset_ms
        return int(self._now_ms() - self._started_at)

    def elapsed_ms(self) -> int:
        """Elapsed time clamped to [0, duration]."""
        return max(0, min(self._duration_ms, self.raw_elapsed_ms()))

    @property
    def is_finished(self) -> bool:
        return self.raw_elapsed_ms() > self._duration_ms

    def start(self, resume_offset_ms: int = 0) -> None:
        """Start (or resume) counting from `resume_offset_ms`."""
        self._offset_ms = max(0, resume_offset_ms)
        self._started_at = self._now_ms() - self._offset_ms
        self._start_ticking()

    def pause(self) -> int:
        """Freeze the clock and return the offset to resume from."""
        self._offset_ms = self.elapsed_ms()
        self._started_at = None
        self.stop()
        return self._offset_ms

    def seek(self, delta_ms: int) -> int:
        """Move by `delta_ms`, clamped to the track, and return the new offset."""
        position = max(0, min(self._duration_ms, self.elapsed_ms() + delta_ms))
        if self._started_at is None:
            self._offset_ms = position
        else:
            self._started_at = self._now_ms() - position
        return position

    def reset(self, duration_ms: int) -> None:
        """Load a new track: stopped, at offset zero."""
        self.stop()
        self._duration_ms = max(0, duration_ms)
        self._started_at = None
        self._offset_ms = 0

    def snapshot(self) -> ClockState:
        return ClockState(self._duration_ms, self._started_at, self._offset_ms)

    def restore(self, state: ClockState) -> None:
        """Reinstate a snapshot, restarting the tick if it was running."""
        self._duration_ms = state.duration_ms
        self._started_at = state.started_at
        self._offset_ms = state.offset_ms
        if state.started_at is None:
            self.stop()
        else:
            self._start_ticking()

    def _start_ticking(self) -> None:
        self.stop()
        if self._on_tick is not None:
            self._task = create_task(self._tick_loop(), name="playback-clock", eager_start=False)

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._started_at is None or self._on_tick is None:
                break
            self._on_tick(self.elapsed_ms())

    def stop(self) -> None:
        """Cancel the tick task without waiting for it."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def aclose(self) -> None:
        """Cancel the tick task and wait until it has finished."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        if task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task
