from __future__ import annotations

from dataclasses import dataclass

from .core import SeededRng


@dataclass(frozen=True, slots=True)
class ColourOption:
    code: int
    name: str
    rgb: tuple[int, int, int]


COLOURS: tuple[ColourOption, ...] = (
    ColourOption(1, "RED", (255, 0, 0)),
    ColourOption(2, "YELLOW", (255, 255, 0)),
    ColourOption(3, "BLUE", (0, 0, 255)),
    ColourOption(4, "GREEN", (0, 128, 0)),
    ColourOption(5, "ORANGE", (255, 165, 0)),
    ColourOption(6, "PURPLE", (128, 0, 128)),
)

COLOURS_BY_NAME = {c.name: c for c in COLOURS}


@dataclass(frozen=True, slots=True)
class ColourWordChallenge:
    word: str
    ink: str
    options: tuple[ColourOption, ...]
    correct_answers: frozenset[str]
    prompt: str

    def is_correct(self, answer: str) -> bool:
        return str(answer).strip().upper() in self.correct_answers


class ColourWordGenerator:
    """Colour-word interference challenges.

    A colour name is drawn in a different ink colour; the player must pick
    the colour the word names. Ink never equals the word, so the word and
    ink never point at the same option.
    """

    def __init__(self, rng: SeededRng, *, palette: tuple[ColourOption, ...] = COLOURS) -> None:
        if len(palette) < 2:
            raise ValueError("palette needs at least two colours")
        self._rng = rng
        self._palette = palette

    def next_challenge(self) -> ColourWordChallenge:
        word = self._palette[self._rng.randint(0, len(self._palette) - 1)]
        others = [c for c in self._palette if c.name != word.name]
        ink = others[self._rng.randint(0, len(others) - 1)]
        return ColourWordChallenge(
            word=word.name,
            ink=ink.name,
            options=self._palette,
            correct_answers=frozenset({word.name}),
            prompt="WHAT COLOUR DOES THE WORD SAY?",
        )


# Inclusive upper latency bound (seconds) -> points, label.
REACTION_BUCKETS: tuple[tuple[float, int, str], ...] = (
    (0.5, 100, "Lightning!"),
    (1.0, 75, "Fast!"),
    (1.5, 50, "Good!"),
    (2.0, 30, "OK"),
)
SLOW_POINTS = 15
SLOW_LABEL = "Slow"


def score_reaction(latency_s: float) -> tuple[int, str]:
    for upper, points, label in REACTION_BUCKETS:
        if latency_s <= upper:
            return points, label
    return SLOW_POINTS, SLOW_LABEL
