from __future__ import annotations

import random

import pytest

from core.models import Card


class FakeClock:
    """Monotonic clock that advances by `step` seconds on every read."""

    def __init__(self, start: float = 1000.0, step: float = 1.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


def make_card(card_id: str, **kwargs) -> Card:
    kwargs.setdefault("src", f"https://example.com/{card_id}.jpg")
    return Card(id=card_id, **kwargs)
