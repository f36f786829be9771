"""Session modes and the context they run in.

A mode turns one round of player actions into a stream of SessionEvents.
GameSession swaps modes on state-transition events; only exploration is
implemented, combat is a reserved name.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Protocol

from rpg_session.context import ContextAssembler
from rpg_session.llm import LLM
from rpg_session.models import GameState, ModeName, PlayerAction, RoomMember, SessionEvent
from rpg_session.rules import D20Engine
from rpg_session.turn_gate import TurnGate


@dataclass
class SessionContext:
    """Everything a mode needs for one round. Built fresh per round."""

    llm: LLM
    engine: D20Engine
    context_builder: ContextAssembler
    game_state: GameState
    turn_gate: TurnGate
    room_members: Sequence[RoomMember]


class GameMode(Protocol):
    name: ModeName

    def process_actions(
        self, actions: Sequence[PlayerAction], ctx: SessionContext
    ) -> AsyncIterator[SessionEvent]: ...

    async def on_enter(self, ctx: SessionContext) -> None: ...

    async def on_exit(self, ctx: SessionContext) -> None: ...
