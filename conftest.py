from pathlib import Path

import pytest

from rpg_session.models import CharacterSheet, GameState, RoomMember
from rpg_session.storage import Storage


@pytest.fixture
def roster() -> list[RoomMember]:
    """Two players with characters and one spectator without."""
    return [
        RoomMember(user_id="u1", username="alice", character_id="charA", character_name="Aria"),
        RoomMember(user_id="u2", username="bob", character_id="charB", character_name="Borin"),
        RoomMember(user_id="u3", username="carol"),
    ]


@pytest.fixture
def sheets() -> dict[str, CharacterSheet]:
    return {
        # dexterity 14 -> +2, rogue saves dex/int
        "charA": CharacterSheet(
            id="charA", name="Aria", character_class="Rogue", level=1,
            ability_scores={"dexterity": 14, "strength": 8, "wisdom": 12},
            max_hp=9,
        ),
        # strength 16 -> +3, fighter saves str/con
        "charB": CharacterSheet(
            id="charB", name="Borin", character_class="Fighter", level=5,
            ability_scores={"strength": 16, "dexterity": 10, "constitution": 14},
            max_hp=44, temp_hp=3,
        ),
    }


@pytest.fixture
def game_state() -> GameState:
    return GameState(room_id="room1")


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    return Storage(tmp_path / "data")
