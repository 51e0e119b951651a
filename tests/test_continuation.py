from __future__ import annotations

from collections.abc import Callable

import pytest

from reflex_arena.continuation import ContinuationController, ContinuationState, Resolution


class ScriptedOracle:
    def __init__(self) -> None:
        self.callbacks: list[Callable[[bool], None]] = []

    def request_continuation(self, on_result: Callable[[bool], None]) -> None:
        self.callbacks.append(on_result)

    def answer(self, granted: bool) -> None:
        self.callbacks[-1](granted)


class BrokenOracle:
    def request_continuation(self, on_result: Callable[[bool], None]) -> None:
        raise RuntimeError("ad sdk unavailable")


def _controller(oracle, *, max_continuations: int = 2, timeout_s: float = 60.0):
    posted: list[tuple[int, bool]] = []
    ctl = ContinuationController(
        oracle,
        post=lambda token, granted: posted.append((token, granted)),
        max_continuations=max_continuations,
        timeout_s=timeout_s,
    )
    return ctl, posted


def test_grant_moves_through_resuming_back_to_eligible() -> None:
    oracle = ScriptedOracle()
    ctl, posted = _controller(oracle)
    assert ctl.state is ContinuationState.ELIGIBLE

    assert ctl.request(now=5.0) is True
    assert ctl.state is ContinuationState.PROMPTING
    assert ctl.can_continue() is False

    oracle.answer(True)
    assert posted == [(1, True)]
    # Posting alone changes nothing; the owner decides when to resolve.
    assert ctl.continuations_used == 0

    assert ctl.resolve(1, True) is Resolution.GRANTED
    assert ctl.continuations_used == 1
    assert ctl.state is ContinuationState.RESUMING

    assert ctl.first_input() is True
    assert ctl.state is ContinuationState.ELIGIBLE
    assert ctl.first_input() is False


def test_decline_does_not_use_a_continuation() -> None:
    oracle = ScriptedOracle()
    ctl, _ = _controller(oracle)
    ctl.request(now=0.0)
    assert ctl.resolve(1, False) is Resolution.DECLINED
    assert ctl.continuations_used == 0
    assert ctl.pending_token is None


def test_cap_reached_exhausts_controller() -> None:
    oracle = ScriptedOracle()
    ctl, _ = _controller(oracle, max_continuations=2)
    for token in (1, 2):
        assert ctl.request(now=0.0) is True
        assert ctl.resolve(token, True) is Resolution.GRANTED
        ctl.first_input()

    assert ctl.state is ContinuationState.EXHAUSTED
    assert ctl.continuations_left == 0
    assert ctl.request(now=0.0) is False
    assert len(oracle.callbacks) == 2


def test_zero_continuations_starts_exhausted() -> None:
    ctl, _ = _controller(ScriptedOracle(), max_continuations=0)
    assert ctl.state is ContinuationState.EXHAUSTED
    assert ctl.can_continue() is False


def test_cancelled_request_ignores_late_answer() -> None:
    oracle = ScriptedOracle()
    ctl, posted = _controller(oracle)
    ctl.request(now=0.0)
    ctl.cancel()
    oracle.answer(True)
    assert posted == [(1, True)]
    assert ctl.resolve(1, True) is None
    assert ctl.continuations_used == 0


def test_timeout_drops_pending_request() -> None:
    oracle = ScriptedOracle()
    ctl, _ = _controller(oracle, timeout_s=60.0)
    ctl.request(now=10.0)
    assert ctl.check_timeout(69.9) is False
    assert ctl.check_timeout(70.0) is True
    assert ctl.pending_token is None
    assert ctl.resolve(1, True) is None


def test_answer_twice_only_counts_once() -> None:
    oracle = ScriptedOracle()
    ctl, _ = _controller(oracle)
    ctl.request(now=0.0)
    assert ctl.resolve(1, True) is Resolution.GRANTED
    assert ctl.resolve(1, True) is None
    assert ctl.continuations_used == 1


def test_oracle_exception_is_reported_as_failed_request() -> None:
    ctl, _ = _controller(BrokenOracle())
    assert ctl.request(now=0.0) is False
    assert ctl.pending_token is None
    assert ctl.state is ContinuationState.ELIGIBLE


@pytest.mark.parametrize("kwargs", [{"max_continuations": -1}, {"timeout_s": 0.0}])
def test_invalid_settings_raise(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        _controller(ScriptedOracle(), **kwargs)
