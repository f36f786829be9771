"""Create a demo party and room for development/testing."""

from pathlib import Path

from rpg_session.models import CharacterSheet, Location, RoomMember
from rpg_session.storage import Storage

DEMO_ROOM_ID = "dragons-hollow"

DEMO_LOCATION = Location(
    name="Dragon's Hollow",
    description="A mountain village half in charred ruins, townsfolk watching from shuttered windows",
)

DEMO_SHEETS = [
    CharacterSheet(
        id="char-thorin",
        name="Thorin",
        character_class="Fighter",
        level=3,
        ability_scores={
            "strength": 16, "dexterity": 12, "constitution": 15,
            "intelligence": 9, "wisdom": 11, "charisma": 10,
        },
        max_hp=28,
    ),
    CharacterSheet(
        id="char-lyra",
        name="Lyra",
        character_class="Rogue",
        level=3,
        ability_scores={
            "strength": 9, "dexterity": 17, "constitution": 12,
            "intelligence": 13, "wisdom": 12, "charisma": 14,
        },
        max_hp=21,
    ),
    CharacterSheet(
        id="char-mira",
        name="Mira",
        character_class="Cleric",
        level=3,
        ability_scores={
            "strength": 12, "dexterity": 10, "constitution": 14,
            "intelligence": 11, "wisdom": 16, "charisma": 13,
        },
        max_hp=24,
        spell_slots={1: 4, 2: 2},
    ),
]

DEMO_MEMBERS = [
    RoomMember(user_id="u-anna", username="anna", character_id="char-thorin", character_name="Thorin"),
    RoomMember(user_id="u-ben", username="ben", character_id="char-lyra", character_name="Lyra"),
    RoomMember(user_id="u-cleo", username="cleo", character_id="char-mira", character_name="Mira"),
]


def demo_sheets() -> dict[str, CharacterSheet]:
    return {s.id: s.model_copy(deep=True) for s in DEMO_SHEETS}


def demo_members() -> list[RoomMember]:
    return [m.model_copy() for m in DEMO_MEMBERS]


def create_demo_data(data_dir: Path) -> Storage:
    """Write the demo sheets and roster into a storage directory."""
    storage = Storage(data_dir)
    for sheet in DEMO_SHEETS:
        storage.save_character(sheet)
    storage.save_members(DEMO_ROOM_ID, DEMO_MEMBERS)
    return storage
