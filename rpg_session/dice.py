"""Dice rolling primitives.

A DiceRoller returns one face for a die of N sides. The rules engine only
ever talks to a roller, so tests swap in FixedDiceRoller for determinism.

    RandomDiceRoller  — production roller
    FixedDiceRoller   — pops predetermined values, for unit tests
    SeededDiceRoller  — reproducible pseudo-random sequence
"""

from __future__ import annotations

import random
from collections import deque
from collections.abc import Iterable
from typing import Protocol

from rpg_session.models import DiceRoll, RollType

MIN_SIDES = 2
MAX_SIDES = 1000


class DiceRoller(Protocol):
    def roll(self, sides: int) -> int: ...


def _check_sides(sides: int) -> None:
    if sides < MIN_SIDES:
        raise ValueError(f"Dice must have at least {MIN_SIDES} sides, got: {sides}")
    if sides > MAX_SIDES:
        raise ValueError(f"Dice cannot have more than {MAX_SIDES} sides, got: {sides}")


class RandomDiceRoller:
    def __init__(self) -> None:
        self._rng = random.SystemRandom()

    def roll(self, sides: int) -> int:
        _check_sides(sides)
        return self._rng.randint(1, sides)


class SeededDiceRoller:
    def __init__(self, seed: int) -> None:
        self._rng = random.Random(seed)

    def roll(self, sides: int) -> int:
        _check_sides(sides)
        return self._rng.randint(1, sides)


class FixedDiceRoller:
    """Returns predetermined values in order; raises when they run out."""

    def __init__(self, values: Iterable[int]) -> None:
        self._values = deque(values)

    @property
    def remaining(self) -> int:
        return len(self._values)

    def roll(self, sides: int) -> int:
        if not self._values:
            raise RuntimeError("FixedDiceRoller: no more values available")
        value = self._values.popleft()
        if not 1 <= value <= sides:
            raise ValueError(f"FixedDiceRoller: value {value} out of range for d{sides}")
        return value


def roll_d20(roller: DiceRoller, modifier: int = 0, roll_type: RollType = "normal") -> DiceRoll:
    """Roll a d20 check.

    Advantage and disadvantage roll two dice and keep the higher or lower
    one. The breakdown keeps both faces so the caller can show them.
    """
    if roll_type == "normal":
        rolls = [roller.roll(20)]
        kept = rolls[0]
        formula = "1d20"
    else:
        rolls = [roller.roll(20), roller.roll(20)]
        if roll_type == "advantage":
            kept = max(rolls)
            formula = "2d20kh1"
        else:
            kept = min(rolls)
            formula = "2d20kl1"

    return DiceRoll(
        formula=formula,
        rolls=rolls,
        kept=kept,
        modifier=modifier,
        total=kept + modifier,
    )
