"""Core domain models.

Every pipeline stage, agent and storage helper operates on these types.
Pydantic is used for validation and serialisation at every data boundary.

GameState carries two independent condition tracks:

    character_states    — mechanical state (hp, rule-defined conditions).
                          Written by the rules side only.
    character_overlays  — player-visible narrative conditions.
                          Written by the world-context updater only.

A mechanical condition and an overlay condition with the same meaning may
coexist; neither implies the other.
"""

from __future__ import annotations

import time
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

Ability = Literal[
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
]

RollType = Literal["normal", "advantage", "disadvantage"]

ConditionCategory = Literal["status", "equipment", "terrain", "magic", "other"]

ConditionExpiry = Literal["turn", "scene", "session", "permanent"]

CheckType = Literal["ability_check", "saving_throw", "attack_roll", "group_check"]

ModeName = Literal["exploration", "combat"]


def now_ms() -> int:
    """Wall-clock milliseconds, the unit used for every timestamp here."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Roster and character sheets
# ---------------------------------------------------------------------------

class RoomMember(BaseModel):
    """A user seated in the room, optionally playing a character."""

    user_id: str
    username: str
    character_id: str | None = None
    character_name: str | None = None


class CharacterSheet(BaseModel):
    """Static character template the rules engine reads ability scores from."""

    id: str
    name: str
    character_class: str = ""
    level: int = 1
    ability_scores: dict[str, int] = Field(default_factory=dict)
    max_hp: int = 10
    temp_hp: int = 0
    spell_slots: dict[int, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Mechanical character state
# ---------------------------------------------------------------------------

class Condition(BaseModel):
    """A rule-defined condition tag (poisoned, prone, ...)."""

    name: str
    source: str
    applied_at: int = Field(default_factory=now_ms)
    expires_at: int | None = None


class SpellSlot(BaseModel):
    level: int
    slots: int
    used: int = 0


class CharacterState(BaseModel):
    character_id: str
    current_hp: int
    max_hp: int
    temporary_hp: int = 0
    conditions: list[Condition] = Field(default_factory=list)
    known_spells: list[SpellSlot] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Narrative overlay + world memory
# ---------------------------------------------------------------------------

class ActiveCondition(BaseModel):
    """A player-visible narrative condition, e.g. "poisoned by snake venom"."""

    id: str
    name: str
    source: str = ""
    category: ConditionCategory = "other"
    expires: ConditionExpiry = "scene"
    mechanical_effect: str | None = None


class CharacterOverlay(BaseModel):
    character_id: str
    conditions: list[ActiveCondition] = Field(default_factory=list)


class WorldContext(BaseModel):
    """The narrator's memory: recent events and facts are bounded FIFO lists."""

    recent_events: list[str] = Field(default_factory=list)
    world_facts: list[str] = Field(default_factory=list)
    flags: dict[str, str] = Field(default_factory=dict)


class Location(BaseModel):
    name: str
    description: str | None = None


class Enemy(BaseModel):
    id: str
    name: str
    hp: int
    max_hp: int
    armor_class: int
    initiative: int | None = None


class Encounter(BaseModel):
    """Reserved for the combat mode."""

    id: str
    name: str
    enemies: list[Enemy] = Field(default_factory=list)
    is_active: bool = False
    round: int | None = None


class GameState(BaseModel):
    """Complete mutable world snapshot for one room."""

    room_id: str
    location: Location = Field(default_factory=lambda: Location(name="Unknown"))
    character_states: dict[str, CharacterState] = Field(default_factory=dict)
    character_overlays: dict[str, CharacterOverlay] = Field(default_factory=dict)
    world_context: WorldContext = Field(default_factory=WorldContext)
    active_encounters: list[Encounter] = Field(default_factory=list)
    last_updated: int = Field(default_factory=now_ms)

    def touch(self) -> None:
        # Strictly increasing, even for two mutations within the same millisecond
        self.last_updated = max(now_ms(), self.last_updated + 1)


# ---------------------------------------------------------------------------
# Player actions + turn history
# ---------------------------------------------------------------------------

class PlayerAction(BaseModel):
    """One submitted action. Drained once per round."""

    user_id: str
    username: str
    action: str
    character_id: str | None = None
    character_name: str | None = None
    timestamp: int = Field(default_factory=now_ms)

    @property
    def display_name(self) -> str:
        return self.character_name or self.username


class ConversationTurn(BaseModel):
    user_inputs: list[PlayerAction]
    assistant_response: str
    timestamp: int = Field(default_factory=now_ms)
    metadata: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Dice
# ---------------------------------------------------------------------------

class DiceRoll(BaseModel):
    """Full breakdown of a roll: every die thrown, the one kept, and the total.

    Group summaries have no single kept die; their total is the success count.
    """

    formula: str
    rolls: list[int]
    kept: int | None = None
    modifier: int = 0
    total: int


# ---------------------------------------------------------------------------
# Session events — transient, yielded once to the caller
# ---------------------------------------------------------------------------

class NarrativeChunkEvent(BaseModel):
    type: Literal["narrative_chunk"] = "narrative_chunk"
    content: str


class DiceRollData(BaseModel):
    check_type: CheckType
    character_id: str
    character_name: str | None = None
    ability: str
    dc: int
    roll: DiceRoll
    success: bool
    reason: str


class DiceRollEvent(BaseModel):
    type: Literal["dice_roll"] = "dice_roll"
    data: DiceRollData


class StateTransitionEvent(BaseModel):
    type: Literal["state_transition"] = "state_transition"
    to: ModeName
    reason: str


class ActionRestrictionEvent(BaseModel):
    type: Literal["action_restriction"] = "action_restriction"
    allowed_character_ids: list[str] = Field(default_factory=list)  # empty = lift
    reason: str


class TurnEndEvent(BaseModel):
    type: Literal["turn_end"] = "turn_end"


SessionEvent = Annotated[
    Union[
        NarrativeChunkEvent,
        DiceRollEvent,
        StateTransitionEvent,
        ActionRestrictionEvent,
        TurnEndEvent,
    ],
    Field(discriminator="type"),
]
