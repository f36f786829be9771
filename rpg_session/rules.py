"""d20 rules primitives — ability modifiers, proficiency, checks and saves.

The arithmetic lives here so the mechanics agent only orchestrates:

  modifier      floor((score - 10) / 2), missing scores count as 10
  proficiency   ceil(1 + level / 4)
  check         d20 (or 2d20 keep high/low) + ability modifier
  save          check + proficiency when the class is proficient in that save

Sheets are looked up by character id; an unknown id raises
UnknownCharacterError so callers can turn it into a failed roll.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

from pydantic import BaseModel

from rpg_session.dice import DiceRoller, RandomDiceRoller, roll_d20
from rpg_session.models import (
    Ability,
    CharacterSheet,
    CharacterState,
    DiceRoll,
    RollType,
    SpellSlot,
)

ABILITIES: tuple[str, ...] = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)

CLASS_SAVING_THROWS: dict[str, tuple[str, str]] = {
    "barbarian": ("strength", "constitution"),
    "bard": ("dexterity", "charisma"),
    "cleric": ("wisdom", "charisma"),
    "druid": ("intelligence", "wisdom"),
    "fighter": ("strength", "constitution"),
    "monk": ("strength", "dexterity"),
    "paladin": ("wisdom", "charisma"),
    "ranger": ("strength", "dexterity"),
    "rogue": ("dexterity", "intelligence"),
    "sorcerer": ("constitution", "charisma"),
    "warlock": ("wisdom", "charisma"),
    "wizard": ("intelligence", "wisdom"),
}

DEFAULT_ABILITY_SCORE = 10


class UnknownCharacterError(LookupError):
    """Raised when no character sheet exists for the requested id."""


class CheckResult(BaseModel):
    character_id: str
    ability: Ability
    roll_type: RollType
    ability_score: int
    modifier: int
    proficiency: int = 0
    roll: DiceRoll


def ability_modifier(score: int) -> int:
    return (score - 10) // 2


def proficiency_bonus(level: int) -> int:
    return math.ceil(1 + level / 4)


def is_proficient_save(character_class: str, ability: str) -> bool:
    return ability in CLASS_SAVING_THROWS.get(character_class.lower(), ())


def new_character_state(sheet: CharacterSheet) -> CharacterState:
    """Fresh mechanical state for a sheet: full hp, no conditions."""
    return CharacterState(
        character_id=sheet.id,
        current_hp=sheet.max_hp,
        max_hp=sheet.max_hp,
        temporary_hp=sheet.temp_hp,
        known_spells=[
            SpellSlot(level=level, slots=count)
            for level, count in sorted(sheet.spell_slots.items())
            if count > 0
        ],
    )


class D20Engine:
    """Resolves ability checks and saving throws against character sheets."""

    def __init__(
        self,
        sheets: Mapping[str, CharacterSheet],
        roller: DiceRoller | None = None,
    ) -> None:
        self._sheets = sheets
        self._roller = roller or RandomDiceRoller()

    def sheet(self, character_id: str) -> CharacterSheet:
        sheet = self._sheets.get(character_id)
        if sheet is None:
            raise UnknownCharacterError(f"Character not found: {character_id}")
        return sheet

    def ability_check(
        self, character_id: str, ability: Ability, roll_type: RollType = "normal"
    ) -> CheckResult:
        sheet = self.sheet(character_id)
        if ability not in ABILITIES:
            raise ValueError(f"Unknown ability: {ability}")
        score = sheet.ability_scores.get(ability, DEFAULT_ABILITY_SCORE)
        modifier = ability_modifier(score)
        return CheckResult(
            character_id=character_id,
            ability=ability,
            roll_type=roll_type,
            ability_score=score,
            modifier=modifier,
            roll=roll_d20(self._roller, modifier, roll_type),
        )

    def saving_throw(
        self, character_id: str, ability: Ability, roll_type: RollType = "normal"
    ) -> CheckResult:
        check = self.ability_check(character_id, ability, roll_type)
        sheet = self.sheet(character_id)
        if not is_proficient_save(sheet.character_class, ability):
            return check

        bonus = proficiency_bonus(sheet.level)
        roll = check.roll.model_copy(update={
            "modifier": check.roll.modifier + bonus,
            "total": check.roll.total + bonus,
        })
        return check.model_copy(update={"proficiency": bonus, "roll": roll})
