"""Exploration mode — the narrator's tool-calling loop.

One round:

    1. context_builder.build(game_state) + one user message with the actions
    2. up to MAX_TOOL_ROUNDS backend calls with the exploration tools:
         plain text  -> one narrative chunk, loop ends
         tool calls  -> each executed in order; its event (if any) is yielded
                        before the tool result goes back into the history
    3. world-context update against the emitted narrative, then turn_end

Tool execution errors become {"error": ...} tool results. Backend errors
during narration propagate.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence

from rpg_session.actions import format_actions
from rpg_session.agents.mechanics import MechanicsAgent
from rpg_session.agents.world_context import WorldContextUpdater
from rpg_session.llm import ChatMessage
from rpg_session.models import (
    ModeName,
    NarrativeChunkEvent,
    PlayerAction,
    SessionEvent,
    TurnEndEvent,
)
from rpg_session.states.base import SessionContext
from rpg_session.tools import EXPLORATION_TOOLS

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 5


class ExplorationState:
    name: ModeName = "exploration"

    def __init__(
        self,
        world_context_updater: WorldContextUpdater,
        mechanics: MechanicsAgent | None = None,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ) -> None:
        self._world_context = world_context_updater
        self._mechanics = mechanics or MechanicsAgent()
        self._max_tool_rounds = max_tool_rounds

    async def on_enter(self, ctx: SessionContext) -> None:
        logger.info("Entering exploration in room %s", ctx.game_state.room_id)

    async def on_exit(self, ctx: SessionContext) -> None:
        logger.info("Leaving exploration in room %s", ctx.game_state.room_id)

    async def process_actions(
        self, actions: Sequence[PlayerAction], ctx: SessionContext
    ) -> AsyncIterator[SessionEvent]:
        messages = ctx.context_builder.build(ctx.game_state)
        messages.append(ChatMessage(role="user", content=format_actions(actions)))

        narrative_parts: list[str] = []

        for round_no in range(self._max_tool_rounds):
            response = await ctx.llm.chat(
                "narrator", messages, tools=EXPLORATION_TOOLS, tool_choice="auto"
            )

            if not response.has_tool_calls:
                if response.content:
                    narrative_parts.append(response.content)
                    yield NarrativeChunkEvent(content=response.content)
                break

            messages.append(ChatMessage(
                role="assistant",
                content=response.content,
                tool_calls=response.tool_calls,
            ))

            for call in response.tool_calls:
                try:
                    result = await self._mechanics.execute(call, ctx)
                except Exception as e:
                    logger.warning("Tool %s failed: %s", call.function.name, e)
                    payload = {"error": str(e)}
                else:
                    payload = result.tool_result
                    if result.session_event is not None:
                        yield result.session_event

                messages.append(ChatMessage(
                    role="tool",
                    content=json.dumps(payload),
                    tool_call_id=call.id,
                ))

            logger.debug("Tool round %d done (%d calls)", round_no + 1, len(response.tool_calls))
        else:
            logger.warning(
                "Narrator hit the tool round cap (%d) without final narration",
                self._max_tool_rounds,
            )

        await self._world_context.update("".join(narrative_parts), actions, ctx.game_state)
        yield TurnEndEvent()
