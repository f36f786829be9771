"""Tool definitions offered to the narrator in exploration mode.

JSON-Schema function declarations in the OpenAI `tools` shape. Argument
names are what the backend sends back in `function.arguments`.
"""

from __future__ import annotations

from rpg_session.rules import ABILITIES

ABILITY_CHECK = "request_ability_check"
SAVING_THROW = "request_saving_throw"
GROUP_CHECK = "request_group_check"
START_COMBAT = "start_combat"
RESTRICT_ACTION = "restrict_action"

_ABILITY_PARAM = {
    "type": "string",
    "enum": list(ABILITIES),
    "description": "Ability used for the roll",
}

_DC_PARAM = {
    "type": "number",
    "description": "Difficulty class: 5 very easy, 10 easy, 15 medium, 20 hard, 25 very hard",
}

_ROLL_TYPE_PARAM = {
    "type": "string",
    "enum": ["normal", "advantage", "disadvantage"],
    "description": "How to roll; defaults to normal",
}


def _function(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


EXPLORATION_TOOLS: list[dict] = [
    _function(
        ABILITY_CHECK,
        "Call when a character's action needs an ability check "
        "(picking a lock, climbing, persuading, sneaking, noticing something).",
        {
            "characterId": {
                "type": "string",
                "description": "Id (or name) of the character making the check",
            },
            "ability": _ABILITY_PARAM,
            "dc": _DC_PARAM,
            "reason": {"type": "string", "description": "Short reason for the check"},
            "rollType": _ROLL_TYPE_PARAM,
        },
        ["characterId", "ability", "dc", "reason"],
    ),
    _function(
        SAVING_THROW,
        "Call when a character must make a saving throw "
        "(dodging a trap, resisting poison, shrugging off a spell).",
        {
            "characterId": {"type": "string", "description": "Id (or name) of the character"},
            "ability": _ABILITY_PARAM,
            "dc": _DC_PARAM,
            "reason": {"type": "string", "description": "Short reason for the save"},
            "rollType": _ROLL_TYPE_PARAM,
        },
        ["characterId", "ability", "dc", "reason"],
    ),
    _function(
        GROUP_CHECK,
        "Ask several characters, or the whole party, to make the same check "
        "(party perception, sneaking as a group). Succeeds when more than half succeed.",
        {
            "ability": _ABILITY_PARAM,
            "dc": _DC_PARAM,
            "reason": {"type": "string", "description": "Short reason for the check"},
            "characterIds": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Characters taking part. Leave empty for the whole party",
            },
        },
        ["ability", "dc", "reason"],
    ),
    _function(
        START_COMBAT,
        "Call when hostile creatures are met or a conflict turns into a fight.",
        {
            "reason": {"type": "string", "description": "Why combat starts"},
            "enemies": {
                "type": "array",
                "description": "Hostile creatures (reserved for the combat mode)",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "count": {"type": "number"},
                    },
                },
            },
        },
        ["reason"],
    ),
    _function(
        RESTRICT_ACTION,
        "Limit the next round to the listed characters (only the leader may address "
        "the king, only the rogue may try the lock). Pass an empty list to lift it.",
        {
            "characterIds": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Characters allowed to act. Empty = everyone may act",
            },
            "reason": {"type": "string", "description": "Why the restriction applies"},
        },
        ["characterIds", "reason"],
    ),
]
