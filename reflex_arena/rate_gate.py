from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .input_ledger import InputLedger

logger = logging.getLogger(__name__)


def required_inputs(minute_index: int, *, base_quota: int = 30, quota_cap: int = 60) -> int:
    """Inputs required during completed minute ``minute_index`` (0-based)."""

    if minute_index < 0:
        raise ValueError("minute_index must be >= 0")
    return min(base_quota + minute_index, quota_cap)


@dataclass(frozen=True, slots=True)
class RateAudit:
    minute_index: int
    required: int
    actual: int

    @property
    def passed(self) -> bool:
        return self.actual >= self.required


class RateGate:
    """Per-minute input-rate audit over active play time.

    Only the minute that has just completed is judged. Each minute boundary
    is marked checked before it is evaluated, so repeated ticks within the
    same minute are no-ops.
    """

    def __init__(
        self,
        ledger: InputLedger,
        *,
        base_quota: int = 30,
        quota_cap: int = 60,
        minute_s: float = 60.0,
    ) -> None:
        if base_quota <= 0:
            raise ValueError("base_quota must be > 0")
        if quota_cap < base_quota:
            raise ValueError("quota_cap must be >= base_quota")
        if minute_s <= 0.0:
            raise ValueError("minute_s must be > 0")

        self._ledger = ledger
        self._base_quota = int(base_quota)
        self._quota_cap = int(quota_cap)
        self._minute_s = float(minute_s)
        self._last_checked_minute = 0
        self._audits: list[RateAudit] = []

    @property
    def last_checked_minute(self) -> int:
        return self._last_checked_minute

    def audits(self) -> list[RateAudit]:
        return list(self._audits)

    def minute_of(self, active_time_s: float) -> int:
        return int(math.floor(active_time_s / self._minute_s))

    def required_for(self, minute_index: int) -> int:
        return required_inputs(minute_index, base_quota=self._base_quota, quota_cap=self._quota_cap)

    def inputs_in_minute(self, minute_index: int) -> int:
        start = minute_index * self._minute_s
        return self._ledger.count_in_window(start, start + self._minute_s)

    def audit(self, active_time_s: float) -> RateAudit | None:
        """Audit the previous minute if a new boundary was crossed.

        Returns None when there is nothing to audit yet.
        """

        current_minute = self.minute_of(active_time_s)
        if current_minute <= self._last_checked_minute or active_time_s < self._minute_s:
            return None

        completed = current_minute - 1
        self._last_checked_minute = current_minute

        audit = RateAudit(
            minute_index=completed,
            required=self.required_for(completed),
            actual=self.inputs_in_minute(completed),
        )
        self._audits.append(audit)
        if audit.passed:
            logger.debug("minute %d passed: %d/%d inputs", completed, audit.actual, audit.required)
        else:
            logger.info("minute %d short: %d/%d inputs", completed, audit.actual, audit.required)
        return audit

    def absorb(self, active_time_s: float) -> bool:
        """Mark any pending minute boundary as checked without judging it.

        Used when another failure already owns the current tick. Returns True
        if a boundary was absorbed.
        """

        current_minute = self.minute_of(active_time_s)
        if current_minute <= self._last_checked_minute or active_time_s < self._minute_s:
            return False
        logger.debug("minute %d audit absorbed by another failure", current_minute - 1)
        self._last_checked_minute = current_minute
        return True
