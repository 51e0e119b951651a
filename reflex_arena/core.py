from __future__ import annotations

import math
import random
from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    AWAITING_CONTINUATION = "awaiting_continuation"
    GAME_OVER = "game_over"


class SessionEvent(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    FAIL = "fail"
    GRANT = "grant"
    END = "end"


class IllegalTransition(ValueError):
    """Raised by next_phase() when an event is not valid in the current phase."""

    def __init__(self, phase: Phase, event: SessionEvent) -> None:
        super().__init__(f"{event.value!r} is not valid while {phase.value!r}")
        self.phase = phase
        self.event = event


_TRANSITIONS: dict[tuple[Phase, SessionEvent], Phase] = {
    (Phase.IDLE, SessionEvent.START): Phase.ACTIVE,
    (Phase.IDLE, SessionEvent.END): Phase.GAME_OVER,
    (Phase.ACTIVE, SessionEvent.PAUSE): Phase.PAUSED,
    (Phase.ACTIVE, SessionEvent.FAIL): Phase.AWAITING_CONTINUATION,
    (Phase.ACTIVE, SessionEvent.END): Phase.GAME_OVER,
    (Phase.PAUSED, SessionEvent.RESUME): Phase.ACTIVE,
    (Phase.PAUSED, SessionEvent.END): Phase.GAME_OVER,
    (Phase.AWAITING_CONTINUATION, SessionEvent.GRANT): Phase.ACTIVE,
    (Phase.AWAITING_CONTINUATION, SessionEvent.END): Phase.GAME_OVER,
}


def next_phase(phase: Phase, event: SessionEvent) -> Phase:
    """Pure transition function for the session state machine.

    A failure with no continuation left goes straight to GAME_OVER through
    SessionEvent.END; FAIL is only used when a continuation will be offered.
    """

    try:
        return _TRANSITIONS[(phase, event)]
    except KeyError:
        raise IllegalTransition(phase, event) from None


@dataclass(frozen=True, slots=True)
class ChallengeEvent:
    index: int
    prompt: str
    expected: str
    response: str
    is_correct: bool
    presented_at_s: float
    answered_at_s: float
    response_time_s: float
    active_time_s: float
    points: int = 0
    label: str = ""


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    title: str
    phase: Phase
    gated: bool
    prompt: str
    payload: object | None
    score: int
    challenges_answered: int
    last_feedback: str | None
    active_time_s: float
    minute_index: int
    minute_quota: int
    minute_inputs: int
    continuations_left: int


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))
