from __future__ import annotations

import logging
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Monotonic wall-clock source; tests inject a hand-driven one."""

    def now(self) -> float: ...


class RealClock:
    def now(self) -> float:
        return time.monotonic()


class PlayClock:
    """Pause-aware elapsed time for one session.

    Active play time is ``(now - started_at) - accumulated_pause_s`` where an
    in-progress pause is not counted: while paused, ``now`` is pinned to the
    moment the pause began, so active time stands still and never runs
    backwards once the pause is folded in.

    Every pause episode must be closed exactly once by ``leave_pause``.
    Mismatched calls are logged and ignored.
    """

    def __init__(self, clock: Clock, *, started_at: float | None = None) -> None:
        self._clock = clock
        self._started_at = clock.now() if started_at is None else float(started_at)
        self._pause_started_at: float | None = None
        self._accumulated_pause_s = 0.0
        self._episodes = 0

    @property
    def started_at(self) -> float:
        return self._started_at

    @property
    def paused(self) -> bool:
        return self._pause_started_at is not None

    @property
    def pause_started_at(self) -> float | None:
        return self._pause_started_at

    @property
    def accumulated_pause_s(self) -> float:
        return self._accumulated_pause_s

    @property
    def episodes(self) -> int:
        """Number of closed pause episodes."""
        return self._episodes

    def enter_pause(self, now: float | None = None) -> bool:
        if self._pause_started_at is not None:
            logger.warning("enter_pause ignored: already paused since %.3f", self._pause_started_at)
            return False
        self._pause_started_at = self._clock.now() if now is None else float(now)
        return True

    def leave_pause(self, now: float | None = None) -> bool:
        if self._pause_started_at is None:
            logger.warning("leave_pause ignored: clock is not paused")
            return False
        t = self._clock.now() if now is None else float(now)
        elapsed = max(0.0, t - self._pause_started_at)
        self._accumulated_pause_s += elapsed
        self._pause_started_at = None
        self._episodes += 1
        logger.debug("pause episode closed after %.3fs (total paused %.3fs)", elapsed, self._accumulated_pause_s)
        return True

    def active_time_now(self) -> float:
        t = self._clock.now() if self._pause_started_at is None else self._pause_started_at
        return max(0.0, (t - self._started_at) - self._accumulated_pause_s)
