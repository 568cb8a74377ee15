"""Active-time tracking for exercise sessions.

Durations are derived from wall-clock timestamps on every read rather than
incremented by a ticking counter, so missed redraw ticks or the host
process being suspended can't make them drift. Time spent paused is
subtracted exactly.
"""

import time
from typing import Callable


class StageTimer:
    """Measures active (non-paused) time for the current stage and the session."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        initial_total: float = 0.0,
        initial_stage: float = 0.0,
    ):
        """Start timing immediately.

        Args:
            clock: Returns the current wall-clock time in seconds
            initial_total: Active seconds already accumulated for the
                session (when restoring a saved session)
            initial_stage: Active seconds already accumulated in the
                current stage
        """
        self._clock = clock

        now = clock()
        # Offsets are folded into the start timestamps
        self._session_started_at = now - initial_total
        self._stage_started_at = now - min(initial_stage, initial_total)

        self._session_paused = 0.0
        self._stage_paused = 0.0

        self._paused_at: float | None = None
        self._stage_paused_at: float | None = None
        self._stopped_at: float | None = None

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    @property
    def is_stopped(self) -> bool:
        return self._stopped_at is not None

    def _now(self) -> float:
        if self._stopped_at is not None:
            return self._stopped_at
        return self._clock()

    @property
    def stage_elapsed(self) -> float:
        """Active seconds in the current stage."""
        now = self._now()
        elapsed = (now - self._stage_started_at) - self._stage_paused
        if self._stage_paused_at is not None:
            elapsed -= now - self._stage_paused_at
        return max(elapsed, 0.0)

    @property
    def total_elapsed(self) -> float:
        """Active seconds across the whole session."""
        now = self._now()
        elapsed = (now - self._session_started_at) - self._session_paused
        if self._paused_at is not None:
            elapsed -= now - self._paused_at
        return max(elapsed, 0.0)

    def pause(self) -> None:
        """Freeze both durations. No-op if already paused or stopped."""
        if self._paused_at is not None or self._stopped_at is not None:
            return
        now = self._clock()
        self._paused_at = now
        self._stage_paused_at = now

    def resume(self) -> None:
        """Unfreeze, excluding the paused gap. No-op if not paused."""
        if self._paused_at is None or self._stopped_at is not None:
            return
        now = self._clock()
        self._session_paused += now - self._paused_at
        self._stage_paused += now - self._stage_paused_at
        self._paused_at = None
        self._stage_paused_at = None

    def restart_stage(self) -> None:
        """Begin timing a new stage from zero."""
        if self._stopped_at is not None:
            return
        now = self._clock()
        self._stage_started_at = now
        self._stage_paused = 0.0
        if self._paused_at is not None:
            # Still paused: the new stage's pause window opens now
            self._stage_paused_at = now

    def stop(self) -> None:
        """Fix both durations at their current values. Further reads don't change."""
        if self._stopped_at is not None:
            return
        self._stopped_at = self._clock()
