from __future__ import annotations

from dataclasses import dataclass

from .core import ChallengeEvent
from .survival import GameOverReason, SurvivalSession


@dataclass(frozen=True, slots=True)
class SurvivalResult:
    """Summary + event log for a finished survival session."""

    seed: int
    score: int
    xp: int
    challenges_answered: int
    continuations_used: int
    active_time_s: float
    mean_rt_ms: float | None
    median_rt_ms: float | None
    reason: GameOverReason | None

    events: list[ChallengeEvent]


def survival_result_from_session(session: SurvivalSession) -> SurvivalResult:
    """Build a SurvivalResult from a session (normally one in GAME_OVER)."""

    events = session.events()
    rts_ms = sorted(int(round(e.response_time_s * 1000.0)) for e in events if e.is_correct)

    mean_ms: float | None
    median_ms: float | None
    if not rts_ms:
        mean_ms = None
        median_ms = None
    else:
        mean_ms = float(sum(rts_ms)) / float(len(rts_ms))
        mid = len(rts_ms) // 2
        if len(rts_ms) % 2 == 1:
            median_ms = float(rts_ms[mid])
        else:
            median_ms = float(rts_ms[mid - 1] + rts_ms[mid]) / 2.0

    return SurvivalResult(
        seed=int(session.seed),
        score=int(session.score),
        xp=int(session.derived_xp()),
        challenges_answered=int(session.challenges_answered),
        continuations_used=int(session.continuations_used),
        active_time_s=float(session.active_time_s()),
        mean_rt_ms=mean_ms,
        median_rt_ms=median_ms,
        reason=session.game_over_reason,
        events=events,
    )
