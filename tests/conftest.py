"""Shared fixtures for the dice bot test suite."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Iterable, List, Optional
from unittest.mock import AsyncMock

import pytest

from roller import Roller


class ScriptedRng:
    """Stands in for random.Random: hands out the given faces in order."""

    def __init__(self, values: Iterable[int] = (), default: Optional[int] = None):
        self.values: List[int] = list(values)
        self.default = default
        self.calls: List[tuple] = []

    def randint(self, a: int, b: int) -> int:
        self.calls.append((a, b))
        if self.values:
            return self.values.pop(0)
        if self.default is None:
            raise AssertionError(f"unexpected roll randint({a}, {b})")
        return self.default


class RecordingRoller(Roller):
    """A Roller that remembers every expression it was asked to roll."""

    def __init__(self, rng):
        super().__init__(rng)
        self.expressions: List[str] = []

    def roll(self, expression: str):
        self.expressions.append(expression)
        return super().roll(expression)


def make_interaction(**extra) -> SimpleNamespace:
    response = SimpleNamespace(
        send_message=AsyncMock(),
        defer=AsyncMock(),
        is_done=lambda: False,
    )
    return SimpleNamespace(
        response=response,
        followup=SimpleNamespace(send=AsyncMock()),
        **extra,
    )


@pytest.fixture
def interaction() -> SimpleNamespace:
    return make_interaction()


@pytest.fixture
def recording_roller():
    def build(values: Iterable[int] = (), default: Optional[int] = None) -> RecordingRoller:
        return RecordingRoller(ScriptedRng(values, default))

    return build
