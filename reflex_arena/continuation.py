from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class RewardOracle(Protocol):
    """External "did the player complete the rewarded action" service.

    ``on_result`` is called once with True (granted) or False (declined).
    It may be called much later, or never if the surrounding UI goes away.
    """

    def request_continuation(self, on_result: Callable[[bool], None]) -> None: ...


class ContinuationState(str, Enum):
    ELIGIBLE = "eligible"
    PROMPTING = "prompting"
    RESUMING = "resuming"
    EXHAUSTED = "exhausted"


class Resolution(str, Enum):
    GRANTED = "granted"
    DECLINED = "declined"


class ContinuationController:
    """Bounded retry bookkeeping around the reward oracle.

    The controller never touches session state. Oracle answers are forwarded
    through ``post(token, granted)`` so the owner can apply them in order;
    the owner then calls ``resolve`` with the same token. A token that is no
    longer pending (timed out, cancelled, already answered) resolves to None.
    """

    def __init__(
        self,
        oracle: RewardOracle,
        *,
        post: Callable[[int, bool], None],
        max_continuations: int = 2,
        timeout_s: float = 60.0,
    ) -> None:
        if max_continuations < 0:
            raise ValueError("max_continuations must be >= 0")
        if timeout_s <= 0.0:
            raise ValueError("timeout_s must be > 0")

        self._oracle = oracle
        self._post = post
        self._max = int(max_continuations)
        self._timeout_s = float(timeout_s)

        self._used = 0
        self._next_token = 1
        self._pending_token: int | None = None
        self._requested_at: float | None = None
        self._state = ContinuationState.ELIGIBLE
        self._settle()

    @property
    def state(self) -> ContinuationState:
        return self._state

    @property
    def continuations_used(self) -> int:
        return self._used

    @property
    def max_continuations(self) -> int:
        return self._max

    @property
    def continuations_left(self) -> int:
        return self._max - self._used

    @property
    def pending_token(self) -> int | None:
        return self._pending_token

    def can_continue(self) -> bool:
        return self._pending_token is None and self._used < self._max

    def request(self, now: float) -> bool:
        """Ask the oracle for a continuation. Returns False if the call failed."""

        if not self.can_continue():
            logger.warning("continuation request refused in state %s", self._state.value)
            return False

        token = self._next_token
        self._next_token += 1
        self._pending_token = token
        self._requested_at = float(now)
        self._state = ContinuationState.PROMPTING
        logger.info("requesting continuation %d/%d (token %d)", self._used + 1, self._max, token)

        def _on_result(granted: bool) -> None:
            self._post(token, bool(granted))

        try:
            self._oracle.request_continuation(_on_result)
        except Exception:
            logger.exception("reward oracle failed; treating as declined")
            self._drop_pending()
            return False
        return True

    def resolve(self, token: int, granted: bool) -> Resolution | None:
        if token != self._pending_token:
            logger.debug("ignoring stale oracle answer for token %d", token)
            return None

        if granted:
            self._used += 1
            self._pending_token = None
            self._requested_at = None
            self._state = ContinuationState.RESUMING
            logger.info("continuation granted (%d/%d used)", self._used, self._max)
            return Resolution.GRANTED

        logger.info("continuation declined")
        self._drop_pending()
        return Resolution.DECLINED

    def check_timeout(self, now: float) -> bool:
        if self._pending_token is None or self._requested_at is None:
            return False
        if now - self._requested_at < self._timeout_s:
            return False
        logger.warning("reward oracle timed out after %.1fs", now - self._requested_at)
        self._drop_pending()
        return True

    def first_input(self) -> bool:
        """Close the resume window after a grant. Returns True if one was open."""

        if self._state is not ContinuationState.RESUMING:
            return False
        self._settle()
        return True

    def cancel(self) -> None:
        if self._pending_token is not None:
            logger.debug("cancelling pending continuation token %d", self._pending_token)
        self._drop_pending()

    def _drop_pending(self) -> None:
        self._pending_token = None
        self._requested_at = None
        self._settle()

    def _settle(self) -> None:
        self._state = ContinuationState.ELIGIBLE if self._used < self._max else ContinuationState.EXHAUSTED
