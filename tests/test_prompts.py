"""Tests for Handlebars prompt rendering and the built-in templates."""

import pytest

from rpg_session.prompts import (
    NARRATOR_SYSTEM_TEMPLATE,
    WORLD_CONTEXT_TEMPLATE,
    PromptError,
    narrator_context,
    render_prompt,
    world_context_context,
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_each_loop():
    assert render_prompt("{{#each items}}{{this}} {{/each}}", {"items": ["a", "b"]}) == "a b "


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_triple_stash_not_escaped():
    assert render_prompt("{{{text}}}", {"text": "<b>&</b>"}) == "<b>&</b>"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


def test_render_returns_str():
    assert type(render_prompt("x", {})) is str


def test_join_helper():
    assert render_prompt('{{join items ", "}}', {"items": ["a", "b", "c"]}) == "a, b, c"


def test_join_helper_empty_list():
    assert render_prompt('[{{join items " | "}}]', {"items": []}) == "[]"


# ── Built-in templates ───────────────────────────────────────


def test_narrator_template_location_and_party():
    text = render_prompt(
        NARRATOR_SYSTEM_TEMPLATE,
        narrator_context("Dragon's Hollow", "charred ruins", ["Aria (id: charA, player: alice)"]),
    )
    assert "Current location: Dragon's Hollow (charred ruins)" in text
    assert "- Aria (id: charA, player: alice)" in text
    assert "request_ability_check, request_saving_throw, request_group_check for rolls" in text


def test_narrator_template_without_party():
    text = render_prompt(NARRATOR_SYSTEM_TEMPLATE, narrator_context("Road"))
    assert "Current location: Road\n" in text
    assert "Party:" not in text


def test_world_context_template_no_conditions():
    text = render_prompt(WORLD_CONTEXT_TEMPLATE, world_context_context("", "[Aria] I wait"))
    assert "(none)" in text
    assert "[Aria] I wait" in text
    assert '"characterConditions"' in text


def test_world_context_template_keeps_player_text_raw():
    text = render_prompt(WORLD_CONTEXT_TEMPLATE, world_context_context("", '[Aria] I say "hi" & wave'))
    assert '[Aria] I say "hi" & wave' in text
