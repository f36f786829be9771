"""GameSession — the per-room round coordinator.

Owns the current turn gate and the active mode. Every event the mode yields
passes through here before it reaches the caller:

    state_transition     switch mode (exit hook, enter hook); entering
                         exploration resets the gate to AllActorsGate
    action_restriction   replace the gate (empty list lifts restriction)

Interception never swallows an event; each one is forwarded unchanged once
the session has applied it. Combat is a reserved mode: a transition to it
raises CombatNotImplementedError and the round fails.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Sequence

from rpg_session.agents.world_context import WorldContextUpdater
from rpg_session.context import ContextAssembler
from rpg_session.llm import LLM
from rpg_session.models import (
    ActionRestrictionEvent,
    GameState,
    PlayerAction,
    RoomMember,
    SessionEvent,
    StateTransitionEvent,
)
from rpg_session.rules import D20Engine
from rpg_session.states.base import GameMode, SessionContext
from rpg_session.states.exploration import ExplorationState
from rpg_session.turn_gate import AllActorsGate, TurnGate, gate_for_restriction

logger = logging.getLogger(__name__)


class CombatNotImplementedError(NotImplementedError):
    """Raised when a transition to the reserved combat mode is requested."""


class UnknownModeError(ValueError):
    """Raised when a transition names a mode that does not exist."""


class GameSession:
    def __init__(
        self,
        llm: LLM,
        engine: D20Engine,
        context_builder: ContextAssembler,
        game_state: GameState,
        world_context_updater: WorldContextUpdater,
        get_members: Callable[[], Sequence[RoomMember]],
        initial_mode: GameMode | None = None,
    ) -> None:
        self._llm = llm
        self._engine = engine
        self._context_builder = context_builder
        self._world_context_updater = world_context_updater
        self._get_members = get_members
        self.game_state = game_state
        self._mode: GameMode = initial_mode or self._create_exploration()
        self._turn_gate: TurnGate = AllActorsGate()

    @property
    def turn_gate(self) -> TurnGate:
        return self._turn_gate

    @turn_gate.setter
    def turn_gate(self, gate: TurnGate) -> None:
        logger.info("Room %s turn gate -> %r", self.game_state.room_id, gate)
        self._turn_gate = gate

    @property
    def mode_name(self) -> str:
        return self._mode.name

    def _create_exploration(self) -> GameMode:
        return ExplorationState(self._world_context_updater)

    def _context(self) -> SessionContext:
        return SessionContext(
            llm=self._llm,
            engine=self._engine,
            context_builder=self._context_builder,
            game_state=self.game_state,
            turn_gate=self._turn_gate,
            room_members=list(self._get_members()),
        )

    async def process_actions(self, actions: Sequence[PlayerAction]) -> AsyncIterator[SessionEvent]:
        """Run one round in the active mode, yielding every event it produces."""
        ctx = self._context()
        async with contextlib.aclosing(self._mode.process_actions(actions, ctx)) as events:
            async for event in events:
                if isinstance(event, StateTransitionEvent):
                    await self.transition_to(event.to, event.reason, ctx)
                elif isinstance(event, ActionRestrictionEvent):
                    self.turn_gate = gate_for_restriction(event.allowed_character_ids, event.reason)
                    ctx.turn_gate = self._turn_gate
                yield event

    async def transition_to(self, mode: str, reason: str, ctx: SessionContext | None = None) -> None:
        """Swap the active mode. The target is checked before the current mode is exited."""
        if mode == "combat":
            raise CombatNotImplementedError(f"Combat mode is not implemented yet ({reason})")
        if mode != "exploration":
            raise UnknownModeError(f"Unknown mode: {mode}")

        ctx = ctx or self._context()
        logger.info("Room %s transitioning %s -> %s: %s",
                    self.game_state.room_id, self._mode.name, mode, reason)
        await self._mode.on_exit(ctx)
        self._mode = self._create_exploration()
        self.turn_gate = AllActorsGate()
        ctx.turn_gate = self._turn_gate
        await self._mode.on_enter(ctx)
