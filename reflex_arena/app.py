"""Pygame UI shell for Colour Rush.

Deterministic timing/scoring/RNG/state lives in reflex_arena/* (core modules);
this module only maps keys and clicks onto SurvivalSession commands and draws
its snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .colour_word import COLOURS, COLOURS_BY_NAME, ColourWordChallenge
from .config import ad_seconds_from_env, config_from_env, db_path_from_env
from .core import Phase
from .persistence import SqliteRunStore
from .play_clock import Clock, RealClock
from .results import survival_result_from_session
from .survival import SurvivalSession, build_survival_session

logger = logging.getLogger(__name__)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (15, 15, 27)
PANEL_BG = (26, 26, 46)
BORDER = (142, 45, 226)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (184, 184, 209)
ACCENT = (0, 255, 198)


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class CountdownRewardOracle:
    """Stand-in reward video: granted once the player sits through it.

    The request is offered first; ``watch()`` starts the countdown and
    ``decline()`` answers False straight away. ``abandon()`` drops the
    callback without answering, as a torn-down ad view would.
    """

    def __init__(self, clock: Clock, *, ad_seconds: float = 5.0) -> None:
        self._clock = clock
        self._ad_seconds = float(ad_seconds)
        self._on_result: Callable[[bool], None] | None = None
        self._started_at: float | None = None

    @property
    def offered(self) -> bool:
        return self._on_result is not None and self._started_at is None

    @property
    def playing(self) -> bool:
        return self._on_result is not None and self._started_at is not None

    def seconds_left(self) -> float:
        if self._started_at is None:
            return self._ad_seconds
        return max(0.0, self._ad_seconds - (self._clock.now() - self._started_at))

    def request_continuation(self, on_result: Callable[[bool], None]) -> None:
        self._on_result = on_result
        self._started_at = None

    def watch(self) -> None:
        if self.offered:
            self._started_at = self._clock.now()

    def decline(self) -> None:
        self._answer(False)

    def abandon(self) -> None:
        self._on_result = None
        self._started_at = None

    def tick(self) -> None:
        if self.playing and self.seconds_left() <= 0.0:
            self._answer(True)

    def _answer(self, granted: bool) -> None:
        cb = self._on_result
        self._on_result = None
        self._started_at = None
        if cb is not None:
            cb(granted)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(w // 2, h // 6)))

        row_h = 44
        y = h // 3
        for idx, item in enumerate(self._items):
            row = pygame.Rect(w // 4, y, w // 2, row_h - 8)
            selected = idx == self._selected
            pygame.draw.rect(surface, ACCENT if selected else PANEL_BG, row)
            pygame.draw.rect(surface, BORDER, row, 2)
            text = self._item_font.render(item.label, True, BG if selected else TEXT_MAIN)
            surface.blit(text, text.get_rect(center=row.center))
            y += row_h

        footer = "Enter/Space: Select  |  Esc/Backspace: Back"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 12)))


_OPTION_KEYS = {
    pygame.K_1: 1,
    pygame.K_2: 2,
    pygame.K_3: 3,
    pygame.K_4: 4,
    pygame.K_5: 5,
    pygame.K_6: 6,
}


class SurvivalScreen:
    def __init__(
        self,
        app: App,
        *,
        session_factory: Callable[[], SurvivalSession],
        oracle: CountdownRewardOracle,
        store: SqliteRunStore | None = None,
    ) -> None:
        self._app = app
        self._session = session_factory()
        self._oracle = oracle
        self._store = store
        self._option_hitboxes: dict[str, pygame.Rect] = {}
        self._game_over_cache: list[str] | None = None

        self._small_font = pygame.font.Font(None, 26)
        self._mid_font = pygame.font.Font(None, 40)
        self._word_font = pygame.font.Font(None, 120)

    def handle_event(self, event: pygame.event.Event) -> None:
        phase = self._session.phase

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
            pos = getattr(event, "pos", None)
            if phase is Phase.ACTIVE and pos is not None:
                for name, rect in self._option_hitboxes.items():
                    if rect.collidepoint(pos):
                        self._session.submit_answer(name)
                        break
            return

        if event.type != pygame.KEYDOWN:
            return
        key = event.key

        if phase is Phase.IDLE:
            if key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._session.start()
            elif key == pygame.K_ESCAPE:
                self._leave()
        elif phase is Phase.ACTIVE:
            if key in _OPTION_KEYS:
                code = _OPTION_KEYS[key]
                self._session.submit_answer(next(c.name for c in COLOURS if c.code == code))
            elif key == pygame.K_p:
                self._session.pause()
            elif key == pygame.K_ESCAPE:
                self._session.exit()
        elif phase is Phase.PAUSED:
            if key == pygame.K_p:
                self._session.resume()
            elif key == pygame.K_ESCAPE:
                self._session.exit()
        elif phase is Phase.AWAITING_CONTINUATION:
            if key in (pygame.K_RETURN, pygame.K_KP_ENTER) and self._oracle.offered:
                self._oracle.watch()
            elif key == pygame.K_ESCAPE and self._oracle.offered:
                self._oracle.decline()
        elif phase is Phase.GAME_OVER:
            if key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_ESCAPE):
                self._leave()

    def _leave(self) -> None:
        self._oracle.abandon()
        self._session.exit()
        self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        self._oracle.tick()
        self._session.update()

        snap = self._session.snapshot()
        w, h = surface.get_size()
        surface.fill(BG)
        self._option_hitboxes = {}

        header = (
            f"Score {snap.score}   Answered {snap.challenges_answered}   "
            f"Minute {snap.minute_index + 1}: {snap.minute_inputs}/{snap.minute_quota}   "
            f"Continues left {snap.continuations_left}"
        )
        surface.blit(self._small_font.render(header, True, TEXT_MUTED), (20, 16))

        challenge = snap.payload if isinstance(snap.payload, ColourWordChallenge) else None
        if snap.phase is Phase.ACTIVE and challenge is not None:
            self._render_challenge(surface, challenge, snap.gated, snap.last_feedback)
        elif snap.phase is Phase.AWAITING_CONTINUATION:
            self._render_lines(surface, snap.prompt.split("\n"), top=h // 4)
            if self._oracle.playing:
                hint = f"Video playing... {self._oracle.seconds_left():.0f}s"
            else:
                hint = "Enter: watch video   Esc: end game"
            text = self._mid_font.render(hint, True, ACCENT)
            surface.blit(text, text.get_rect(center=(w // 2, h * 3 // 4)))
        elif snap.phase is Phase.GAME_OVER:
            if self._game_over_cache is None:
                self._game_over_cache = self._game_over_lines()
            self._render_lines(surface, self._game_over_cache, top=h // 6)
        else:
            self._render_lines(surface, snap.prompt.split("\n"), top=h // 5)

    def _render_challenge(
        self,
        surface: pygame.Surface,
        challenge: ColourWordChallenge,
        gated: bool,
        feedback: str | None,
    ) -> None:
        w, h = surface.get_size()
        ink = COLOURS_BY_NAME[challenge.ink].rgb
        word = self._word_font.render(challenge.word, True, ink)
        surface.blit(word, word.get_rect(center=(w // 2, h // 3)))

        hint = challenge.prompt if not gated else "Answer to restart the clock"
        text = self._small_font.render(hint, True, TEXT_MUTED)
        surface.blit(text, text.get_rect(center=(w // 2, h // 3 + 80)))

        cols = 3
        bw = (w - 80) // cols
        bh = 56
        for i, opt in enumerate(challenge.options):
            r = pygame.Rect(40 + (i % cols) * bw + 6, h // 2 + 40 + (i // cols) * (bh + 12), bw - 12, bh)
            pygame.draw.rect(surface, PANEL_BG, r)
            pygame.draw.rect(surface, opt.rgb, r, 4)
            label = self._small_font.render(f"{opt.code}  {opt.name}", True, TEXT_MAIN)
            surface.blit(label, label.get_rect(center=r.center))
            self._option_hitboxes[opt.name] = r

        if feedback:
            fb = self._mid_font.render(feedback, True, ACCENT)
            surface.blit(fb, fb.get_rect(midbottom=(w // 2, h - 16)))

    def _render_lines(self, surface: pygame.Surface, lines: list[str], *, top: int) -> None:
        w, _ = surface.get_size()
        y = top
        for line in lines:
            text = self._mid_font.render(line, True, TEXT_MAIN)
            surface.blit(text, text.get_rect(midtop=(w // 2, y)))
            y += 44

    def _game_over_lines(self) -> list[str]:
        result = survival_result_from_session(self._session)
        rt = "n/a" if result.mean_rt_ms is None else f"{result.mean_rt_ms:.0f} ms"
        lines = [
            "Game Over",
            f"Score: {result.score}   XP: +{result.xp}",
            f"Answered: {result.challenges_answered}   Mean RT: {rt}",
            f"Continues used: {result.continuations_used}",
        ]
        if self._store is not None:
            try:
                totals = self._store.totals()
            except Exception:
                logger.exception("could not read player totals")
            else:
                lines.append(f"Level {totals.level}   Total XP {totals.total_xp}   Best {totals.best_score}")
        lines.append("Press Enter to return.")
        return lines


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("Colour Rush")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    real_clock = RealClock()
    config = config_from_env()
    store = SqliteRunStore(db_path_from_env())
    ad_seconds = ad_seconds_from_env()

    def open_survival() -> None:
        oracle = CountdownRewardOracle(real_clock, ad_seconds=ad_seconds)
        app.push(
            SurvivalScreen(
                app,
                session_factory=lambda: build_survival_session(
                    clock=real_clock,
                    oracle=oracle,
                    config=config,
                    sink=store,
                ),
                oracle=oracle,
                store=store,
            )
        )

    main_items = [
        MenuItem("Survival", open_survival),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Colour Rush", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
