"""Mechanics agent — executes the narrator's tool calls.

Each call resolves to a tool result (JSON-serialisable, fed back to the
narrator) and optionally one SessionEvent for the caller. Nothing here
writes to GameState; check outcomes are returned as data.

Tool arguments arrive as a JSON string. Unparseable arguments and unknown
tool names come back as {"error": ...} payloads instead of raising, so the
narrator can read the error and carry on. Argument validation errors and
unknown characters do raise; the exploration loop turns those into error
payloads too.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from rpg_session.llm import ToolCall
from rpg_session.models import (
    Ability,
    ActionRestrictionEvent,
    DiceRoll,
    DiceRollData,
    DiceRollEvent,
    RollType,
    RoomMember,
    SessionEvent,
    StateTransitionEvent,
)
from rpg_session.rules import CheckResult
from rpg_session.states.base import SessionContext
from rpg_session.tools import (
    ABILITY_CHECK,
    GROUP_CHECK,
    RESTRICT_ACTION,
    SAVING_THROW,
    START_COMBAT,
)

logger = logging.getLogger(__name__)


class MechanicsResult(BaseModel):
    tool_result: dict[str, Any]
    session_event: SessionEvent | None = None


# ── Tool argument models (camelCase on the wire) ─────────


class _ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckArgs(_ToolArgs):
    character_id: str
    ability: Ability
    dc: int
    reason: str | None = None
    roll_type: RollType = "normal"

    @field_validator("ability", mode="before")
    @classmethod
    def _lower_ability(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @field_validator("roll_type", mode="before")
    @classmethod
    def _default_roll_type(cls, v: Any) -> Any:
        return v or "normal"


class GroupCheckArgs(_ToolArgs):
    ability: Ability
    dc: int
    reason: str | None = None
    character_ids: list[str] | None = None  # None or empty = whole party

    @field_validator("ability", mode="before")
    @classmethod
    def _lower_ability(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class StartCombatArgs(_ToolArgs):
    reason: str | None = None
    enemies: list[dict[str, Any]] | None = None


class RestrictActionArgs(_ToolArgs):
    character_ids: list[str] | None = None  # None or empty = lift
    reason: str | None = None


# ── Roster lookups ───────────────────────────────────────


def resolve_character_id(raw: str, members: Sequence[RoomMember]) -> str:
    """Map a tool's character reference to a character id.

    Tries an exact id match, then a case-insensitive character name or
    username. Unresolved references pass through unchanged.
    """
    for m in members:
        if m.character_id and m.character_id == raw:
            return m.character_id
    lowered = raw.lower()
    for m in members:
        if not m.character_id:
            continue
        if (m.character_name and m.character_name.lower() == lowered) or m.username.lower() == lowered:
            return m.character_id
    return raw


def character_display_name(character_id: str, members: Sequence[RoomMember]) -> str | None:
    for m in members:
        if m.character_id == character_id:
            return m.character_name or m.username
    return None


class GroupMemberResult(BaseModel):
    character_id: str
    character_name: str
    roll: DiceRoll | None = None
    success: bool
    error: str | None = None


class MechanicsAgent:
    async def execute(self, call: ToolCall, ctx: SessionContext) -> MechanicsResult:
        name = call.function.name
        try:
            args = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError:
            logger.warning("Tool %s sent arguments that are not JSON: %r", name, call.function.arguments)
            return MechanicsResult(tool_result={"error": "Invalid tool arguments JSON"})
        if not isinstance(args, dict):
            return MechanicsResult(tool_result={"error": "Tool arguments must be a JSON object"})

        if name == ABILITY_CHECK:
            return self._check("ability_check", CheckArgs.model_validate(args), ctx)
        if name == SAVING_THROW:
            return self._check("saving_throw", CheckArgs.model_validate(args), ctx)
        if name == GROUP_CHECK:
            return self._group_check(GroupCheckArgs.model_validate(args), ctx)
        if name == START_COMBAT:
            parsed = StartCombatArgs.model_validate(args)
            return MechanicsResult(
                tool_result={"acknowledged": True},
                session_event=StateTransitionEvent(to="combat", reason=parsed.reason or "Combat begins"),
            )
        if name == RESTRICT_ACTION:
            parsed = RestrictActionArgs.model_validate(args)
            return MechanicsResult(
                tool_result={"acknowledged": True},
                session_event=ActionRestrictionEvent(
                    allowed_character_ids=[
                        resolve_character_id(cid, ctx.room_members)
                        for cid in parsed.character_ids or []
                    ],
                    reason=parsed.reason or "Action restricted",
                ),
            )

        logger.warning("Narrator requested unknown tool %r", name)
        return MechanicsResult(tool_result={"error": f"Unknown tool: {name}"})

    def _check(self, check_type: str, args: CheckArgs, ctx: SessionContext) -> MechanicsResult:
        character_id = resolve_character_id(args.character_id, ctx.room_members)
        if check_type == "saving_throw":
            result: CheckResult = ctx.engine.saving_throw(character_id, args.ability, args.roll_type)
        else:
            result = ctx.engine.ability_check(character_id, args.ability, args.roll_type)

        success = result.roll.total >= args.dc
        character_name = character_display_name(character_id, ctx.room_members)

        return MechanicsResult(
            tool_result={
                "characterId": character_id,
                "ability": args.ability,
                "rollType": args.roll_type,
                "roll": result.roll.model_dump(),
                "dc": args.dc,
                "success": success,
                "reason": args.reason or "",
            },
            session_event=DiceRollEvent(data=DiceRollData(
                check_type=check_type,
                character_id=character_id,
                character_name=character_name,
                ability=args.ability,
                dc=args.dc,
                roll=result.roll,
                success=success,
                reason=args.reason or "",
            )),
        )

    def _group_check(self, args: GroupCheckArgs, ctx: SessionContext) -> MechanicsResult:
        if args.character_ids:
            targets = [resolve_character_id(cid, ctx.room_members) for cid in args.character_ids]
        else:
            targets = [m.character_id for m in ctx.room_members if m.character_id]

        if not targets:
            return MechanicsResult(tool_result={"error": "No characters available for group check"})

        results: list[GroupMemberResult] = []
        for character_id in targets:
            name = character_display_name(character_id, ctx.room_members) or "Unknown"
            try:
                check = ctx.engine.ability_check(character_id, args.ability, "normal")
            except Exception as e:
                logger.warning("Group check failed for %s: %s", character_id, e)
                results.append(GroupMemberResult(
                    character_id=character_id, character_name=name,
                    success=False, error=str(e),
                ))
                continue
            results.append(GroupMemberResult(
                character_id=character_id,
                character_name=name,
                roll=check.roll,
                success=check.roll.total >= args.dc,
            ))

        success_count = sum(1 for r in results if r.success)
        total = len(results)
        group_success = success_count > total / 2

        return MechanicsResult(
            tool_result={
                "ability": args.ability,
                "dc": args.dc,
                "reason": args.reason or "",
                "results": [r.model_dump() for r in results],
                "successCount": success_count,
                "totalCount": total,
                "success": group_success,
            },
            session_event=DiceRollEvent(data=DiceRollData(
                check_type="group_check",
                character_id="group",
                character_name=f"Party ({success_count}/{total} succeeded)",
                ability=args.ability,
                dc=args.dc,
                roll=DiceRoll(
                    formula=f"{total}d20",
                    rolls=[r.roll.kept if r.roll and r.roll.kept is not None else 0 for r in results],
                    modifier=0,
                    total=success_count,
                ),
                success=group_success,
                reason=args.reason or "",
            )),
        )
