"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database — reads and writes go through plain helper methods that
load and dump JSON.

Directory layout:

    {base}/
      characters.json             ← list of CharacterSheet objects
      rooms/
        {room_id}/
          members.json            ← list of RoomMember objects
          history.json            ← list of ConversationTurn objects
          saves/
            {slot}.json           ← GameState snapshot

GameState's dict-valued fields (character_states, character_overlays) are
written as arrays of records and rebuilt into dicts on load.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from rpg_session.models import CharacterSheet, ConversationTurn, GameState, RoomMember

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_\-]+$")

_MAP_FIELDS = ("character_states", "character_overlays")


def _check_name(kind: str, value: str) -> str:
    if not _SAFE_NAME.match(value):
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


def game_state_to_record(state: GameState) -> dict[str, Any]:
    data = state.model_dump()
    for field in _MAP_FIELDS:
        data[field] = list(data[field].values())
    return data


def game_state_from_record(data: dict[str, Any]) -> GameState:
    data = dict(data)
    for field in _MAP_FIELDS:
        records = data.get(field) or []
        if isinstance(records, list):
            data[field] = {r["character_id"]: r for r in records}
    return GameState.model_validate(data)


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._rooms_root = base_path / "rooms"
        self._rooms_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _room_dir(self, room_id: str) -> Path:
        return self._rooms_root / _check_name("room id", room_id)

    def _saves_dir(self, room_id: str) -> Path:
        return self._room_dir(room_id) / "saves"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Game state saves
    # ------------------------------------------------------------------

    def save_game_state(self, room_id: str, slot: str, state: GameState) -> None:
        path = self._saves_dir(room_id) / f"{_check_name('save slot', slot)}.json"
        self._write_json(path, game_state_to_record(state))
        logger.info("Saved room %s to slot %s", room_id, slot)

    def load_game_state(self, room_id: str, slot: str) -> GameState | None:
        path = self._saves_dir(room_id) / f"{_check_name('save slot', slot)}.json"
        if not path.exists():
            return None
        return game_state_from_record(self._read_json(path))

    def list_saves(self, room_id: str) -> list[str]:
        saves = self._saves_dir(room_id)
        if not saves.is_dir():
            return []
        return sorted(p.stem for p in saves.glob("*.json"))

    def delete_save(self, room_id: str, slot: str) -> bool:
        path = self._saves_dir(room_id) / f"{_check_name('save slot', slot)}.json"
        if not path.exists():
            return False
        path.unlink()
        return True

    # ------------------------------------------------------------------
    # Conversation history
    # ------------------------------------------------------------------

    def save_history(self, room_id: str, turns: list[ConversationTurn]) -> None:
        self._write_json(
            self._room_dir(room_id) / "history.json",
            [t.model_dump() for t in turns],
        )

    def get_history(self, room_id: str) -> list[ConversationTurn]:
        path = self._room_dir(room_id) / "history.json"
        if not path.exists():
            return []
        return [ConversationTurn.model_validate(t) for t in self._read_json(path)]

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def save_members(self, room_id: str, members: list[RoomMember]) -> None:
        self._write_json(
            self._room_dir(room_id) / "members.json",
            [m.model_dump() for m in members],
        )

    def get_members(self, room_id: str) -> list[RoomMember]:
        path = self._room_dir(room_id) / "members.json"
        if not path.exists():
            return []
        return [RoomMember.model_validate(m) for m in self._read_json(path)]

    # ------------------------------------------------------------------
    # Character sheets
    # ------------------------------------------------------------------

    def save_character(self, sheet: CharacterSheet) -> None:
        """Upsert a character sheet by id."""
        sheets = self.get_characters()
        for i, s in enumerate(sheets):
            if s.id == sheet.id:
                sheets[i] = sheet
                break
        else:
            sheets.append(sheet)
        self._write_json(
            self._base / "characters.json",
            [s.model_dump() for s in sheets],
        )

    def get_characters(self) -> list[CharacterSheet]:
        path = self._base / "characters.json"
        if not path.exists():
            return []
        return [CharacterSheet.model_validate(s) for s in self._read_json(path)]

    def get_character(self, character_id: str) -> CharacterSheet | None:
        for sheet in self.get_characters():
            if sheet.id == character_id:
                return sheet
        return None
