"""Handlebars prompt rendering for the narrator and the world-context extractor."""

from collections.abc import Callable
from typing import Any

import pybars

from rpg_session.tools import ABILITY_CHECK, GROUP_CHECK, SAVING_THROW


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_join(this, items, separator=", "):
    """{{join array ", "}} — the items as one separator-joined string."""
    return separator.join(str(item) for item in items or [])


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Built-in templates ───────────────────────────────────
# Player-authored text goes through triple-stash so it is not HTML-escaped.

NARRATOR_SYSTEM_TEMPLATE = """\
You are the Dungeon Master of a tabletop role-playing session.
Narrate the outcome of the players' actions in vivid second person.
Current location: {{{location}}}{{#if location_description}} ({{{location_description}}}){{/if}}
{{#if party}}
Party:
{{#each party}}
- {{{this}}}
{{/each}}
{{/if}}

When an action's outcome is uncertain, call a tool instead of deciding it yourself:
{{{join check_tools ", "}}} for rolls,
start_combat when a fight breaks out, restrict_action when only some characters
may act next. Use character ids from the party list. Wait for each result and
let it shape the narration."""


WORLD_CONTEXT_TEMPLATE = """\
You are a state tracker for a tabletop role-playing session. From this round's
narration, extract two kinds of state update.

## Current character effects (for reference)
{{#if conditions}}{{{conditions}}}{{else}}(none){{/if}}

## Player actions
{{{actions}}}

## Output
Reply with strict JSON in exactly this shape:

```json
{
  "worldMemory": {
    "recentEvents": ["1-3 short summaries of what happened this round"],
    "worldFacts": ["newly established lasting facts or NPC details (may be empty)"],
    "flags": { "location": "current place, if it changed", "time": "current time, if it changed" }
  },
  "characterConditions": [
    {
      "characterId": "id of the affected character",
      "add": [
        {
          "name": "effect name",
          "source": "where it came from",
          "category": "status|equipment|terrain|magic|other",
          "expires": "turn|scene|session|permanent",
          "mechanicalEffect": "optional, e.g. +2 AC or disadvantage on strength checks"
        }
      ],
      "remove": ["names of effects that ended"]
    }
  ]
}
```

Rules:
- worldMemory.flags lists only keys that changed this round
- worldFacts only adds new information; never restate known facts
- characterConditions.add only lists effects applied this round
- use empty arrays when nothing changed; do not omit fields
- output the JSON only, no other text"""


def narrator_context(
    location: str,
    location_description: str | None = None,
    party: list[str] | None = None,
) -> dict[str, Any]:
    """Template variables for NARRATOR_SYSTEM_TEMPLATE."""
    return {
        "location": location,
        "location_description": location_description or "",
        "party": party or [],
        "check_tools": [ABILITY_CHECK, SAVING_THROW, GROUP_CHECK],
    }


def world_context_context(conditions: str, actions: str) -> dict[str, Any]:
    """Template variables for WORLD_CONTEXT_TEMPLATE."""
    return {"conditions": conditions, "actions": actions}
