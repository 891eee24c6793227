"""Elapsed time accounting anchored to wall-clock start time."""

from __future__ import annotations

import math


class ElapsedTimeTracker:
    """
    Journey duration from an anchor timestamp.

    Ticks may arrive late, early or not at all; each tick recomputes from
    the anchor so the result does not drift with the scheduler.
    """

    def __init__(self) -> None:
        self._anchor: float | None = None
        self._elapsed = 0
        self._frozen = False

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def running(self) -> bool:
        return self._anchor is not None and not self._frozen

    def start(self, now: float) -> None:
        self._anchor = now
        self._elapsed = 0
        self._frozen = False

    def tick(self, now: float) -> int:
        if self.running:
            # clock going backwards never shrinks the elapsed time
            self._elapsed = max(self._elapsed, math.floor(now - self._anchor))  # type: ignore[operator]
        return self._elapsed

    def stop(self) -> int:
        self._frozen = True
        return self._elapsed

    def reset(self) -> None:
        self._anchor = None
        self._elapsed = 0
        self._frozen = False


def format_elapsed(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
