"""Survival mode: an endless colour-word stream under an escalating input rate.

SurvivalSession is the only owner of session state. Timer ticks (``update``),
player inputs (``submit_answer``) and reward-oracle answers all pass through
it; oracle answers are queued and applied at the start of the next tick or
input, never from inside the oracle's own callback.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .colour_word import ColourWordChallenge, ColourWordGenerator, score_reaction
from .config import SurvivalConfig
from .continuation import ContinuationController, ContinuationState, Resolution, RewardOracle
from .core import (
    ChallengeEvent,
    IllegalTransition,
    Phase,
    SeededRng,
    SessionEvent,
    SessionSnapshot,
    next_phase,
    round_half_up,
)
from .input_ledger import InputLedger
from .play_clock import Clock, PlayClock
from .rate_gate import RateAudit, RateGate

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    WRONG_ANSWER = "wrong_answer"
    RATE_SHORTFALL = "rate_shortfall"


class GameOverReason(str, Enum):
    DECLINED = "declined"
    EXHAUSTED = "exhausted"
    ORACLE_TIMEOUT = "oracle_timeout"
    ORACLE_ERROR = "oracle_error"
    EXITED = "exited"


class SessionEndSink(Protocol):
    def on_session_end(self, *, final_score: int, derived_xp: int, challenges_answered: int) -> None: ...


@dataclass(frozen=True, slots=True)
class _OracleAnswer:
    token: int
    granted: bool


def derive_xp(score: int, multiplier: float = 1.5) -> int:
    return round_half_up(score * multiplier)


class SurvivalSession:
    def __init__(
        self,
        *,
        clock: Clock,
        oracle: RewardOracle,
        seed: int,
        config: SurvivalConfig | None = None,
        sink: SessionEndSink | None = None,
    ) -> None:
        self._config = SurvivalConfig() if config is None else config
        self._clock = clock
        self._sink = sink
        self._seed = int(seed)
        self._title = "Colour Rush: Survival"

        self._gen = ColourWordGenerator(SeededRng(self._seed))
        self._ledger = InputLedger(retention_s=self._config.ledger_retention_s)
        self._gate = RateGate(
            self._ledger,
            base_quota=self._config.base_quota,
            quota_cap=self._config.quota_cap,
            minute_s=self._config.minute_s,
        )
        self._inbox: deque[_OracleAnswer] = deque()
        self._continuations = ContinuationController(
            oracle,
            post=self._post,
            max_continuations=self._config.max_continuations,
            timeout_s=self._config.oracle_timeout_s,
        )

        self._phase = Phase.IDLE
        self._play_clock: PlayClock | None = None
        self._awaiting_first_input = False

        self._current: ColourWordChallenge | None = None
        self._challenge_shown_at: float | None = None

        self._score = 0
        self._answered = 0
        self._last_feedback: str | None = None
        self._last_failure: FailureKind | None = None
        self._game_over_reason: GameOverReason | None = None
        self._events: list[ChallengeEvent] = []

    # -- read side -----------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def config(self) -> SurvivalConfig:
        return self._config

    @property
    def score(self) -> int:
        return self._score

    @property
    def challenges_answered(self) -> int:
        return self._answered

    @property
    def gated(self) -> bool:
        """True between a granted continuation and the next input."""
        return self._awaiting_first_input

    @property
    def continuations_used(self) -> int:
        return self._continuations.continuations_used

    @property
    def max_continuations(self) -> int:
        return self._continuations.max_continuations

    @property
    def continuation_state(self) -> ContinuationState:
        return self._continuations.state

    @property
    def last_checked_minute(self) -> int:
        return self._gate.last_checked_minute

    @property
    def last_failure(self) -> FailureKind | None:
        return self._last_failure

    @property
    def game_over_reason(self) -> GameOverReason | None:
        return self._game_over_reason

    @property
    def current_challenge(self) -> ColourWordChallenge | None:
        return self._current

    @property
    def play_clock(self) -> PlayClock | None:
        return self._play_clock

    def active_time_s(self) -> float:
        return 0.0 if self._play_clock is None else self._play_clock.active_time_now()

    def derived_xp(self) -> int:
        return derive_xp(self._score, self._config.xp_multiplier)

    def events(self) -> list[ChallengeEvent]:
        return list(self._events)

    def rate_audits(self) -> list[RateAudit]:
        return self._gate.audits()

    # -- commands ------------------------------------------------------

    def start(self) -> bool:
        if not self._apply(SessionEvent.START):
            return False
        self._play_clock = PlayClock(self._clock)
        self._deal_new_challenge()
        logger.info("survival session started (seed=%d)", self._seed)
        return True

    def update(self) -> None:
        """Periodic tick: apply queued oracle answers, then audit the input rate."""

        if self._phase in (Phase.IDLE, Phase.GAME_OVER):
            return
        self._drain()

        if self._phase is Phase.AWAITING_CONTINUATION:
            if self._continuations.check_timeout(self._clock.now()):
                self._finish(GameOverReason.ORACLE_TIMEOUT)
            return

        if self._phase is not Phase.ACTIVE or self._awaiting_first_input:
            return

        audit = self._gate.audit(self.active_time_s())
        if audit is not None and not audit.passed:
            self._fail(FailureKind.RATE_SHORTFALL)

    def submit_answer(self, answer: str) -> bool:
        """Handle one player input. Returns True if the input was accepted."""

        self._drain()
        if self._phase is not Phase.ACTIVE:
            logger.debug("input %r discarded while %s", answer, self._phase.value)
            return False
        assert self._play_clock is not None
        assert self._current is not None
        assert self._challenge_shown_at is not None

        now = self._clock.now()
        if self._awaiting_first_input:
            self._play_clock.leave_pause(now)
            self._awaiting_first_input = False
            self._continuations.first_input()
            # The challenge dealt at grant time only goes live now.
            self._challenge_shown_at = now

        active = self._play_clock.active_time_now()
        self._ledger.record(active)

        challenge = self._current
        rt = max(0.0, now - self._challenge_shown_at)
        is_correct = challenge.is_correct(answer)
        points, label = score_reaction(rt) if is_correct else (0, "")

        self._events.append(
            ChallengeEvent(
                index=len(self._events),
                prompt=f"{challenge.word} in {challenge.ink}",
                expected=challenge.word,
                response=str(answer).strip().upper(),
                is_correct=is_correct,
                presented_at_s=self._challenge_shown_at,
                answered_at_s=now,
                response_time_s=rt,
                active_time_s=active,
                points=points,
                label=label,
            )
        )

        if is_correct:
            self._score += points
            self._answered += 1
            self._last_feedback = label
            self._deal_new_challenge()
            return True

        # The wrong answer is what the player sees; a minute boundary crossed
        # in the same tick is consumed here so it cannot prompt a second time.
        self._gate.absorb(active)
        self._fail(FailureKind.WRONG_ANSWER)
        return True

    def pause(self) -> bool:
        self._drain()
        if self._phase is not Phase.ACTIVE or self._awaiting_first_input:
            logger.debug("pause ignored while %s (gated=%s)", self._phase.value, self._awaiting_first_input)
            return False
        if not self._apply(SessionEvent.PAUSE):
            return False
        self._started_clock().enter_pause(self._clock.now())
        self._clear_challenge()
        return True

    def resume(self) -> bool:
        self._drain()
        if not self._apply(SessionEvent.RESUME):
            return False
        self._started_clock().leave_pause(self._clock.now())
        self._deal_new_challenge()
        return True

    def exit(self) -> None:
        """Manual exit: ends the session and ignores any late oracle answer."""

        if self._phase is Phase.GAME_OVER:
            return
        self._finish(GameOverReason.EXITED)

    def snapshot(self) -> SessionSnapshot:
        active = self.active_time_s()
        minute = self._gate.minute_of(active)
        return SessionSnapshot(
            title=self._title,
            phase=self._phase,
            gated=self._awaiting_first_input,
            prompt=self._prompt_text(),
            payload=self._current,
            score=self._score,
            challenges_answered=self._answered,
            last_feedback=self._last_feedback,
            active_time_s=active,
            minute_index=minute,
            minute_quota=self._gate.required_for(minute),
            minute_inputs=self._gate.inputs_in_minute(minute),
            continuations_left=self._continuations.continuations_left,
        )

    # -- internals -----------------------------------------------------

    def _post(self, token: int, granted: bool) -> None:
        if self._phase is Phase.GAME_OVER:
            logger.debug("oracle answer for token %d arrived after game over", token)
            return
        self._inbox.append(_OracleAnswer(token=token, granted=granted))

    def _drain(self) -> None:
        while self._inbox:
            self._on_oracle_answer(self._inbox.popleft())

    def _on_oracle_answer(self, msg: _OracleAnswer) -> None:
        resolution = self._continuations.resolve(msg.token, msg.granted)
        if resolution is None:
            return
        if resolution is Resolution.DECLINED:
            self._finish(GameOverReason.DECLINED)
            return

        if not self._apply(SessionEvent.GRANT):
            return
        play_clock = self._started_clock()
        now = self._clock.now()
        # Close the failure pause, then open the wait-for-first-input pause.
        play_clock.leave_pause(now)
        play_clock.enter_pause(now)
        self._awaiting_first_input = True
        self._deal_new_challenge()

    def _fail(self, kind: FailureKind) -> None:
        self._last_failure = kind
        logger.info("failure: %s at %.2fs active (score=%d)", kind.value, self.active_time_s(), self._score)

        if not self._continuations.can_continue():
            self._finish(GameOverReason.EXHAUSTED)
            return
        if not self._apply(SessionEvent.FAIL):
            return

        now = self._clock.now()
        self._started_clock().enter_pause(now)
        self._clear_challenge()

        if not self._continuations.request(now):
            self._finish(GameOverReason.ORACLE_ERROR)

    def _finish(self, reason: GameOverReason) -> None:
        if not self._apply(SessionEvent.END):
            return
        if self._play_clock is not None and self._play_clock.paused:
            self._play_clock.leave_pause(self._clock.now())

        self._continuations.cancel()
        self._inbox.clear()
        self._awaiting_first_input = False
        self._game_over_reason = reason
        self._clear_challenge()
        logger.info(
            "game over (%s): score=%d answered=%d continuations=%d",
            reason.value,
            self._score,
            self._answered,
            self.continuations_used,
        )

        if self._sink is None or self._play_clock is None:
            # Never started: nothing was played, so nothing is reported.
            return
        try:
            self._sink.on_session_end(
                final_score=self._score,
                derived_xp=self.derived_xp(),
                challenges_answered=self._answered,
            )
        except Exception:
            logger.exception("session end sink failed")

    def _started_clock(self) -> PlayClock:
        if self._play_clock is None:
            raise RuntimeError("survival session has not been started")
        return self._play_clock

    def _apply(self, event: SessionEvent) -> bool:
        try:
            self._phase = next_phase(self._phase, event)
        except IllegalTransition as exc:
            logger.warning("ignored: %s", exc)
            return False
        return True

    def _deal_new_challenge(self) -> None:
        self._current = self._gen.next_challenge()
        self._challenge_shown_at = self._clock.now()

    def _clear_challenge(self) -> None:
        self._current = None
        self._challenge_shown_at = None

    def _prompt_text(self) -> str:
        if self._phase is Phase.IDLE:
            return "\n".join(
                [
                    "Colour Rush: Survival",
                    "",
                    "Pick the colour the WORD names, not the ink it is drawn in.",
                    f"Keep up at least {self._config.base_quota} answers a minute;",
                    "the pace rises by one every minute.",
                    "",
                    "Press Enter to start.",
                ]
            )
        if self._phase is Phase.PAUSED:
            return "Paused. Press P to resume."
        if self._phase is Phase.AWAITING_CONTINUATION:
            cause = "Too slow!" if self._last_failure is FailureKind.RATE_SHORTFALL else "Wrong answer!"
            left = self._continuations.continuations_left
            return f"{cause}\nScore: {self._score}\nWatch a video to continue ({left} left)?"
        if self._phase is Phase.GAME_OVER:
            return "\n".join(
                [
                    "Game Over",
                    "",
                    f"Score:     {self._score}",
                    f"XP:        {self.derived_xp()}",
                    f"Answered:  {self._answered}",
                ]
            )
        if self._current is None:
            return ""
        if self._awaiting_first_input:
            return f"{self._current.prompt}\n(clock resumes on your answer)"
        return self._current.prompt


def build_survival_session(
    *,
    clock: Clock,
    oracle: RewardOracle,
    config: SurvivalConfig | None = None,
    sink: SessionEndSink | None = None,
) -> SurvivalSession:
    cfg = SurvivalConfig() if config is None else config
    seed = cfg.seed if cfg.seed is not None else random.SystemRandom().randint(1, 2**31 - 1)
    return SurvivalSession(clock=clock, oracle=oracle, seed=seed, config=cfg, sink=sink)
