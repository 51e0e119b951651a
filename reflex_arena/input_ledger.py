from __future__ import annotations

import logging
from bisect import bisect_left
from collections import deque

logger = logging.getLogger(__name__)


class InputLedger:
    """Append-only record of input times in active-play-time seconds.

    Entries older than ``retention_s`` behind the newest entry are pruned
    lazily on each append. Appends must be non-decreasing; an out-of-order
    time is clamped to the newest entry and logged.
    """

    def __init__(self, *, retention_s: float = 300.0) -> None:
        if retention_s <= 0.0:
            raise ValueError("retention_s must be > 0")
        self._retention_s = float(retention_s)
        self._times: deque[float] = deque()

    def __len__(self) -> int:
        return len(self._times)

    @property
    def retention_s(self) -> float:
        return self._retention_s

    def times(self) -> tuple[float, ...]:
        return tuple(self._times)

    def record(self, active_time_s: float) -> None:
        t = float(active_time_s)
        if self._times and t < self._times[-1]:
            logger.warning("ledger append out of order (%.3f < %.3f); clamping", t, self._times[-1])
            t = self._times[-1]
        self._times.append(t)

        cutoff = t - self._retention_s
        while self._times and self._times[0] < cutoff:
            self._times.popleft()

    def count_in_window(self, start_s: float, end_s: float) -> int:
        """Count entries with ``start_s <= t < end_s``."""

        if end_s <= start_s:
            return 0
        ordered = list(self._times)
        return bisect_left(ordered, end_s) - bisect_left(ordered, start_s)
