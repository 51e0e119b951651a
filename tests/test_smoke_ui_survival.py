from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import pytest


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_ui_smoke_play_and_exit_survival(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
    db = tmp_path / "runs.sqlite3"
    monkeypatch.setenv("REFLEX_DB_PATH", str(db))

    import pygame

    from reflex_arena.app import run
    from reflex_arena.persistence import SqliteRunStore

    def key(k: int) -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": "", "mod": 0}))

    def inject(frame: int) -> None:
        # Main Menu -> Survival -> start -> answer -> pause -> resume -> exit -> back
        script = {
            1: pygame.K_RETURN,
            2: pygame.K_RETURN,
            3: pygame.K_1,
            4: pygame.K_p,
            5: pygame.K_p,
            6: pygame.K_ESCAPE,
            8: pygame.K_RETURN,
        }
        if frame in script:
            key(script[frame])

    assert run(max_frames=12, event_injector=inject) == 0
    # Either the answer was wrong (continuation offered, then exited) or
    # right; the exit always records exactly one run.
    assert SqliteRunStore(db).totals().runs == 1


def test_countdown_oracle_grants_after_video() -> None:
    from reflex_arena.app import CountdownRewardOracle

    clock = FakeClock()
    oracle = CountdownRewardOracle(clock, ad_seconds=5.0)
    answers: list[bool] = []

    oracle.request_continuation(answers.append)
    assert oracle.offered and not oracle.playing
    oracle.watch()
    assert oracle.playing
    clock.advance(4.0)
    oracle.tick()
    assert answers == []
    clock.advance(1.0)
    oracle.tick()
    assert answers == [True]
    assert not oracle.offered and not oracle.playing


def test_countdown_oracle_decline_and_abandon() -> None:
    from reflex_arena.app import CountdownRewardOracle

    oracle = CountdownRewardOracle(FakeClock(), ad_seconds=5.0)
    answers: list[bool] = []

    oracle.request_continuation(answers.append)
    oracle.decline()
    assert answers == [False]

    oracle.request_continuation(answers.append)
    oracle.abandon()
    oracle.tick()
    oracle.decline()
    assert answers == [False]


def test_game_over_screen_reads_totals_once(tmp_path: Path) -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from reflex_arena.app import App, CountdownRewardOracle, SurvivalScreen
    from reflex_arena.persistence import SqliteRunStore
    from reflex_arena.survival import SurvivalSession

    class CountingStore(SqliteRunStore):
        def __init__(self, db_path: Path) -> None:
            super().__init__(db_path)
            self.totals_calls = 0

        def totals(self):
            self.totals_calls += 1
            return super().totals()

    pygame.init()
    try:
        surface = pygame.Surface((960, 540))
        app = App(surface=surface, font=pygame.font.Font(None, 36))
        clock = FakeClock()
        oracle = CountdownRewardOracle(clock, ad_seconds=5.0)
        store = CountingStore(tmp_path / "runs.sqlite3")
        screen = SurvivalScreen(
            app,
            session_factory=lambda: SurvivalSession(clock=clock, oracle=oracle, seed=9, sink=store),
            oracle=oracle,
            store=store,
        )

        screen.handle_event(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_RETURN, "unicode": "", "mod": 0}))
        screen.render(surface)
        screen.handle_event(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_ESCAPE, "unicode": "", "mod": 0}))
        for _ in range(30):
            screen.render(surface)

        assert store.totals_calls == 1
        assert store.totals().runs == 1
    finally:
        pygame.quit()
