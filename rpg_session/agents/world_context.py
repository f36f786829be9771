"""World-context updater — post-turn memory extraction.

After a round's narration is final, one extra backend call (stage
"world_context") asks the model for a JSON patch:

    worldMemory.recentEvents   appended, oldest evicted past the cap
    worldMemory.worldFacts     appended, oldest evicted past the cap
    worldMemory.flags          merged by key
    characterConditions        per-character overlay add / remove

The patch is parsed completely before anything is applied. Any failure
along the way (backend error, prompt error, no JSON, wrong shape) is
logged and leaves the game state untouched.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from rpg_session.actions import format_actions
from rpg_session.llm import LLM, ChatMessage
from rpg_session.models import (
    ActiveCondition,
    CharacterOverlay,
    ConditionCategory,
    ConditionExpiry,
    GameState,
    PlayerAction,
)
from rpg_session.prompts import WORLD_CONTEXT_TEMPLATE, render_prompt, world_context_context

logger = logging.getLogger(__name__)

_CATEGORIES = {"status", "equipment", "terrain", "magic", "other"}
_EXPIRIES = {"turn", "scene", "session", "permanent"}

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_INLINE_JSON = re.compile(r"\{[\s\S]*\}")


class WorldContextLimits(BaseModel):
    max_recent_events: int = 12
    max_world_facts: int = 50


# ── Patch models (camelCase, as the extractor writes them) ──


class _PatchModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConditionPatch(_PatchModel):
    name: str
    source: str = ""
    category: ConditionCategory = "other"
    expires: ConditionExpiry = "scene"
    mechanical_effect: str | None = None

    @field_validator("source", mode="before")
    @classmethod
    def _none_source(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, v: Any) -> Any:
        return v if v in _CATEGORIES else "other"

    @field_validator("expires", mode="before")
    @classmethod
    def _coerce_expires(cls, v: Any) -> Any:
        return v if v in _EXPIRIES else "scene"


class CharacterConditionPatch(_PatchModel):
    character_id: str
    add: list[ConditionPatch] = Field(default_factory=list)
    remove: list[str] = Field(default_factory=list)

    @field_validator("add", "remove", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return v or []


class WorldMemoryPatch(_PatchModel):
    recent_events: list[str] = Field(default_factory=list)
    world_facts: list[str] = Field(default_factory=list)
    flags: dict[str, str] = Field(default_factory=dict)

    @field_validator("recent_events", "world_facts", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return v or []

    @field_validator("flags", mode="before")
    @classmethod
    def _stringify_flags(cls, v: Any) -> Any:
        if not v:
            return {}
        if not isinstance(v, dict):
            return v
        return {str(k): str(val) for k, val in v.items() if val is not None}


class WorldContextPatch(_PatchModel):
    world_memory: WorldMemoryPatch = Field(default_factory=WorldMemoryPatch)
    character_conditions: list[CharacterConditionPatch] = Field(default_factory=list)

    @field_validator("world_memory", mode="before")
    @classmethod
    def _none_memory(cls, v: Any) -> Any:
        return v or {}

    @field_validator("character_conditions", mode="before")
    @classmethod
    def _none_conditions(cls, v: Any) -> Any:
        return v or []


# ── Parsing ──────────────────────────────────────────────


def extract_json(text: str) -> dict | None:
    """Pull a JSON object out of model output: fenced block first, then inline."""
    match = _FENCED_JSON.search(text) or _INLINE_JSON.search(text)
    if match is None:
        return None
    raw = match.group(1) if match.re is _FENCED_JSON else match.group(0)
    try:
        data = json.loads(raw.strip())
    except json.JSONDecodeError as e:
        logger.warning("World-context output is not valid JSON: %s", e)
        return None
    return data if isinstance(data, dict) else None


def parse_patch(text: str) -> WorldContextPatch | None:
    data = extract_json(text)
    if data is None:
        return None
    return WorldContextPatch.model_validate(data)


def format_overlay_conditions(overlays: dict[str, CharacterOverlay]) -> str:
    """`characterId: name(expires), ...`, one line per character with conditions."""
    lines = []
    for character_id, overlay in overlays.items():
        if overlay.conditions:
            parts = ", ".join(f"{c.name}({c.expires})" for c in overlay.conditions)
            lines.append(f"{character_id}: {parts}")
    return "\n".join(lines)


# ── Apply ────────────────────────────────────────────────


def _append_bounded(items: list[str], new: Sequence[str], limit: int) -> None:
    items.extend(new)
    if len(items) > limit:
        del items[: len(items) - limit]


def apply_patch(patch: WorldContextPatch, game_state: GameState, limits: WorldContextLimits) -> None:
    world = game_state.world_context
    memory = patch.world_memory
    _append_bounded(world.recent_events, memory.recent_events, limits.max_recent_events)
    _append_bounded(world.world_facts, memory.world_facts, limits.max_world_facts)
    world.flags.update(memory.flags)

    for entry in patch.character_conditions:
        overlay = game_state.character_overlays.get(entry.character_id)
        if overlay is None:
            overlay = CharacterOverlay(character_id=entry.character_id)
            game_state.character_overlays[entry.character_id] = overlay
        if entry.remove:
            removed = set(entry.remove)
            overlay.conditions = [
                c for c in overlay.conditions if c.id not in removed and c.name not in removed
            ]
        for cond in entry.add:
            overlay.conditions.append(ActiveCondition(id=str(uuid.uuid4()), **cond.model_dump()))

    game_state.touch()


class WorldContextUpdater:
    """Extracts and applies the world-memory patch for one completed round."""

    def __init__(self, llm: LLM, limits: WorldContextLimits | None = None) -> None:
        self._llm = llm
        self.limits = limits or WorldContextLimits()

    async def update(
        self,
        narrative: str,
        actions: Sequence[PlayerAction],
        game_state: GameState,
    ) -> None:
        """Never raises. A failed extraction leaves game_state as it was."""
        try:
            prompt = render_prompt(
                WORLD_CONTEXT_TEMPLATE,
                world_context_context(
                    format_overlay_conditions(game_state.character_overlays),
                    format_actions(actions),
                ),
            )
            response = await self._llm.chat(
                "world_context",
                [
                    ChatMessage(role="system", content=prompt),
                    ChatMessage(role="user", content=narrative),
                ],
            )
            patch = parse_patch(response.content)
            if patch is None:
                logger.warning("World-context extraction returned no JSON; skipping update")
                return
            apply_patch(patch, game_state, self.limits)
        except Exception as e:
            logger.warning("World-context update failed: %s", e)
            return

        logger.debug(
            "World context updated: %d recent events, %d facts, %d overlays",
            len(game_state.world_context.recent_events),
            len(game_state.world_context.world_facts),
            len(game_state.character_overlays),
        )
