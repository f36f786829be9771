"""Context assembly — turns a GameState into the narrator's message history.

Providers each contribute blocks, sorted by priority:

    0    system-prompt          narrator instructions, location, party
    10   world-context          flags, recent events, world facts
    15   character-status       narrative overlay conditions
    20   character-state        mechanical hp / conditions summary
    300  conversation-history   previous rounds as user/assistant pairs

Blocks below priority 200 are folded into a single system message; the rest
become individual messages in order. A failing provider is logged and left
out, unless it is critical, in which case build() raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Literal, Protocol

from pydantic import BaseModel

from rpg_session.history import ConversationHistory
from rpg_session.llm import ChatMessage
from rpg_session.models import GameState, RoomMember
from rpg_session.prompts import NARRATOR_SYSTEM_TEMPLATE, narrator_context, render_prompt

logger = logging.getLogger(__name__)

SYSTEM_PRIORITY_LIMIT = 200
CRITICAL_PROVIDERS = frozenset({"system-prompt", "conversation-history"})


class ContextBlock(BaseModel):
    name: str
    content: str
    priority: int
    role: Literal["system", "user", "assistant"] = "system"


class BuildLogEntry(BaseModel):
    provider: str
    priority: int
    included: bool
    block_count: int = 0
    reason: str | None = None


class ContextProvider(Protocol):
    name: str
    priority: int

    def provide(self, state: GameState) -> ContextBlock | list[ContextBlock] | None: ...


class ContextAssembler(Protocol):
    """What the narrator needs: a pure function of the game state."""

    def build(self, state: GameState) -> list[ChatMessage]: ...


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class SystemPromptProvider:
    name = "system-prompt"
    priority = 0

    def __init__(self, get_members: Callable[[], Sequence[RoomMember]] | None = None) -> None:
        self._get_members = get_members

    def provide(self, state: GameState) -> ContextBlock:
        party: list[str] = []
        if self._get_members is not None:
            for m in self._get_members():
                if m.character_id:
                    party.append(f"{m.character_name or m.username} (id: {m.character_id}, player: {m.username})")
        content = render_prompt(
            NARRATOR_SYSTEM_TEMPLATE,
            narrator_context(state.location.name, state.location.description, party),
        )
        return ContextBlock(name=self.name, content=content, priority=self.priority)


class WorldContextProvider:
    name = "world-context"
    priority = 10

    def provide(self, state: GameState) -> ContextBlock | None:
        world = state.world_context
        lines = ["[WORLD CONTEXT]"]
        for key, value in world.flags.items():
            lines.append(f"{key.upper()}: {value}")
        if world.recent_events:
            lines.append("RECENT:")
            lines.extend(f"- {item}" for item in world.recent_events)
        if world.world_facts:
            lines.append("FACTS:")
            lines.extend(f"- {item}" for item in world.world_facts)
        if len(lines) == 1:
            return None
        return ContextBlock(name=self.name, content="\n".join(lines), priority=self.priority)


class CharacterStatusProvider:
    """Player-visible overlay conditions — never the mechanical ones."""

    name = "character-status"
    priority = 15

    def provide(self, state: GameState) -> ContextBlock | None:
        lines = ["[CHARACTER CONDITIONS]"]
        for character_id, overlay in state.character_overlays.items():
            if not overlay.conditions:
                continue
            parts = []
            for cond in overlay.conditions:
                effect = f"({cond.mechanical_effect})" if cond.mechanical_effect else ""
                parts.append(f"{cond.name}{effect}[{cond.expires}]")
            lines.append(f"{character_id}: {', '.join(parts)}")
        if len(lines) == 1:
            return None
        return ContextBlock(name=self.name, content="\n".join(lines), priority=self.priority)


class CharacterStateProvider:
    name = "character-state"
    priority = 20

    def provide(self, state: GameState) -> ContextBlock | None:
        if not state.character_states:
            return None
        lines = ["[CHARACTER STATE]"]
        for character_id, cs in state.character_states.items():
            hp = f"HP {cs.current_hp}/{cs.max_hp}"
            if cs.temporary_hp:
                hp += f" (+{cs.temporary_hp} temp)"
            line = f"{character_id}: {hp}"
            if cs.conditions:
                line += "; conditions: " + ", ".join(c.name for c in cs.conditions)
            lines.append(line)
        return ContextBlock(name=self.name, content="\n".join(lines), priority=self.priority)


class ConversationHistoryProvider:
    name = "conversation-history"
    priority = 300

    def __init__(self, history: ConversationHistory) -> None:
        self._history = history

    def provide(self, state: GameState) -> list[ContextBlock]:
        return [
            ContextBlock(name=self.name, content=m.content, priority=self.priority, role=m.role)
            for m in self._history.to_messages()
        ]


# ---------------------------------------------------------------------------
# ContextBuilder
# ---------------------------------------------------------------------------

class ContextBuilder:
    def __init__(self) -> None:
        self._providers: list[ContextProvider] = []
        self._build_log: list[BuildLogEntry] = []

    def add(self, provider: ContextProvider) -> ContextBuilder:
        self._providers.append(provider)
        return self

    def snapshot(self) -> list[BuildLogEntry]:
        """Log of the most recent build: which providers contributed, and why not."""
        return list(self._build_log)

    def build(self, state: GameState) -> list[ChatMessage]:
        self._build_log = []
        blocks: list[ContextBlock] = []

        for provider in sorted(self._providers, key=lambda p: p.priority):
            try:
                result = provider.provide(state)
            except Exception as e:
                if provider.name in CRITICAL_PROVIDERS:
                    raise RuntimeError(f"Critical context provider failed: {provider.name}") from e
                logger.warning("Context provider %s failed: %s", provider.name, e)
                self._build_log.append(BuildLogEntry(
                    provider=provider.name, priority=provider.priority,
                    included=False, reason=f"Error: {e}",
                ))
                continue

            if result is None:
                new_blocks = []
            elif isinstance(result, list):
                new_blocks = result
            else:
                new_blocks = [result]
            blocks.extend(new_blocks)
            self._build_log.append(BuildLogEntry(
                provider=provider.name,
                priority=provider.priority,
                included=bool(new_blocks),
                block_count=len(new_blocks),
                reason=None if new_blocks else "Provider returned nothing",
            ))

        return self._to_messages(blocks)

    @staticmethod
    def _to_messages(blocks: list[ContextBlock]) -> list[ChatMessage]:
        system_parts = [b.content for b in blocks if b.priority < SYSTEM_PRIORITY_LIMIT]
        messages: list[ChatMessage] = []
        if system_parts:
            messages.append(ChatMessage(role="system", content="\n\n".join(system_parts)))
        for block in blocks:
            if block.priority >= SYSTEM_PRIORITY_LIMIT:
                messages.append(ChatMessage(role=block.role, content=block.content))
        return messages


def default_context_builder(
    history: ConversationHistory,
    get_members: Callable[[], Sequence[RoomMember]] | None = None,
) -> ContextBuilder:
    return (
        ContextBuilder()
        .add(SystemPromptProvider(get_members))
        .add(WorldContextProvider())
        .add(CharacterStatusProvider())
        .add(CharacterStateProvider())
        .add(ConversationHistoryProvider(history))
    )
