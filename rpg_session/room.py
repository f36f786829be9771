"""Room — wires one game session to its roster, actions, history and saves.

The host (CLI, web layer, tests) drives a room like this:

    room.submit_action(user_id, username, "I pick the lock", character_id)
    if room.ready():
        async for event in room.play_round():
            ...

A round that fails (backend error, combat transition) records nothing:
the conversation turn is written and the game autosaved only once
turn_end has been seen.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

from rpg_session.actions import ActionCollector
from rpg_session.agents.world_context import WorldContextUpdater
from rpg_session.config import default_config, world_context_limits
from rpg_session.context import default_context_builder
from rpg_session.dice import DiceRoller
from rpg_session.history import ConversationHistory
from rpg_session.llm import LLM
from rpg_session.models import (
    CharacterSheet,
    ConversationTurn,
    GameState,
    NarrativeChunkEvent,
    PlayerAction,
    RoomMember,
    SessionEvent,
    TurnEndEvent,
)
from rpg_session.rules import D20Engine, new_character_state
from rpg_session.session import GameSession
from rpg_session.storage import Storage

logger = logging.getLogger(__name__)

AUTOSAVE_SLOT = "autosave"


class ActionRejectedError(ValueError):
    """Raised when the current turn gate refuses an actor."""


class Room:
    def __init__(
        self,
        room_id: str,
        llm: LLM,
        sheets: Mapping[str, CharacterSheet],
        members: Sequence[RoomMember] = (),
        *,
        storage: Storage | None = None,
        config: dict[str, Any] | None = None,
        roller: DiceRoller | None = None,
        game_state: GameState | None = None,
    ) -> None:
        config = config or default_config()
        self.id = room_id
        self._sheets = dict(sheets)
        self._members: list[RoomMember] = list(members)
        self._storage = storage
        self._autosave = bool(config.get("autosave", True))
        self.turn_count = 0

        self.game_state = game_state or GameState(room_id=room_id)
        self.history = ConversationHistory(max_turns=config["history"]["max_turns"])
        self.actions = ActionCollector()
        self.context_builder = default_context_builder(self.history, self.members)
        self.session = GameSession(
            llm=llm,
            engine=D20Engine(self._sheets, roller),
            context_builder=self.context_builder,
            game_state=self.game_state,
            world_context_updater=WorldContextUpdater(llm, world_context_limits(config)),
            get_members=self.members,
        )

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def members(self) -> list[RoomMember]:
        return list(self._members)

    def add_member(self, member: RoomMember) -> None:
        """Seat a member, replacing any earlier entry for the same user."""
        self._members = [m for m in self._members if m.user_id != member.user_id]
        self._members.append(member)

    def remove_member(self, user_id: str) -> None:
        self._members = [m for m in self._members if m.user_id != user_id]

    def _member(self, user_id: str) -> RoomMember | None:
        for m in self._members:
            if m.user_id == user_id:
                return m
        return None

    # ------------------------------------------------------------------
    # Actions and rounds
    # ------------------------------------------------------------------

    def submit_action(
        self,
        user_id: str,
        username: str,
        text: str,
        character_id: str | None = None,
    ) -> PlayerAction:
        member = self._member(user_id)
        if member is None or not member.character_id:
            raise ActionRejectedError(f"{username} has no character in this room")
        if character_id is None:
            character_id = member.character_id
        elif character_id != member.character_id:
            raise ActionRejectedError(f"{username} cannot act as {character_id}")

        gate = self.session.turn_gate
        if not gate.can_act(user_id, character_id):
            status = gate.get_status()
            raise ActionRejectedError(status.reason or f"{username} cannot act right now")

        action = PlayerAction(
            user_id=user_id,
            username=username,
            action=text,
            character_id=character_id,
            character_name=member.character_name,
        )
        self.actions.add(action)
        return action

    def ready(self) -> bool:
        eligible = sum(1 for m in self._members if m.character_id)
        return self.actions.has_all_acted(eligible, self.session.turn_gate)

    def _ensure_character_states(self) -> None:
        for m in self._members:
            if not m.character_id or m.character_id in self.game_state.character_states:
                continue
            sheet = self._sheets.get(m.character_id)
            if sheet is not None:
                self.game_state.character_states[m.character_id] = new_character_state(sheet)

    async def play_round(self) -> AsyncIterator[SessionEvent]:
        """Drain the pending actions and stream one round of session events."""
        actions = self.actions.drain()
        self._ensure_character_states()

        narrative: list[str] = []
        async for event in self.session.process_actions(actions):
            if isinstance(event, NarrativeChunkEvent):
                narrative.append(event.content)
            elif isinstance(event, TurnEndEvent):
                self._finish_round(actions, "".join(narrative))
            yield event

    def _finish_round(self, actions: list[PlayerAction], narrative: str) -> None:
        self.turn_count += 1
        self.history.add(ConversationTurn(
            user_inputs=actions,
            assistant_response=narrative,
            metadata={"turn": self.turn_count, "mode": self.session.mode_name},
        ))
        if self._storage is not None and self._autosave:
            self.save(AUTOSAVE_SLOT)

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    def save(self, slot: str) -> None:
        if self._storage is None:
            raise RuntimeError("Room has no storage configured")
        self._storage.save_game_state(self.id, slot, self.game_state)
        self._storage.save_history(self.id, self.history.all())
        self._storage.save_members(self.id, self._members)

    def load(self, slot: str) -> bool:
        """Restore game state, history and roster from a save. Returns False if the slot is empty."""
        if self._storage is None:
            raise RuntimeError("Room has no storage configured")
        state = self._storage.load_game_state(self.id, slot)
        if state is None:
            return False
        # Swap contents in place; the session and providers hold this object
        for field in GameState.model_fields:
            setattr(self.game_state, field, getattr(state, field))
        self.history.set_history(self._storage.get_history(self.id))
        members = self._storage.get_members(self.id)
        if members:
            self._members = members
        logger.info("Loaded room %s from slot %s", self.id, slot)
        return True
