"""Tests for rpg_session.turn_gate."""

from rpg_session.models import PlayerAction
from rpg_session.turn_gate import (
    AllActorsGate,
    InitiativeGate,
    PausedGate,
    RestrictedGate,
    gate_for_restriction,
)


def _action(user_id: str, character_id: str | None = None) -> PlayerAction:
    return PlayerAction(user_id=user_id, username=user_id, action="act", character_id=character_id)


class TestAllActorsGate:
    def test_anyone_can_act(self) -> None:
        gate = AllActorsGate()
        assert gate.can_act("u1")
        assert gate.can_act("u2", "charB")

    def test_cannot_advance_with_no_eligible_actors(self) -> None:
        assert not AllActorsGate().can_advance([_action("u1")], 0)

    def test_advance_when_all_acted(self) -> None:
        gate = AllActorsGate()
        assert not gate.can_advance([_action("u1")], 2)
        assert gate.can_advance([_action("u1"), _action("u2")], 2)
        assert gate.can_advance([_action("u1"), _action("u2"), _action("u3")], 2)

    def test_status(self) -> None:
        status = AllActorsGate().get_status()
        assert status.type == "all_actors"
        assert status.allowed_character_ids is None


class TestRestrictedGate:
    def test_only_listed_characters_act(self) -> None:
        gate = RestrictedGate(["charB"], "charB negotiates alone")
        assert gate.can_act("anyone", "charB")
        assert not gate.can_act("anyone", "charA")
        assert not gate.can_act("anyone")

    def test_advance_needs_every_listed_id(self) -> None:
        gate = RestrictedGate(["charA", "charB"], "r")
        assert not gate.can_advance([_action("u1", "charA")], 5)
        assert gate.can_advance([_action("u1", "charA"), _action("u2", "charB")], 5)

    def test_unrelated_actions_are_irrelevant(self) -> None:
        gate = RestrictedGate(["charB"], "r")
        actions = [_action("u1", "charA"), _action("u3"), _action("u2", "charB")]
        assert gate.can_advance(actions, 3)
        assert not gate.can_advance([_action("u1", "charA"), _action("u3")], 3)

    def test_status(self) -> None:
        status = RestrictedGate(["charB"], "negotiation").get_status()
        assert status.type == "restricted"
        assert status.allowed_character_ids == ["charB"]
        assert status.reason == "negotiation"

    def test_allowed_ids_copied(self) -> None:
        ids = ["charA"]
        gate = RestrictedGate(ids, "r")
        ids.append("charB")
        assert gate.allowed_character_ids == ("charA",)


class TestPausedGate:
    def test_nobody_acts_and_never_advances(self) -> None:
        gate = PausedGate("cutscene")
        assert not gate.can_act("u1", "charA")
        assert not gate.can_advance([_action("u1", "charA")], 1)
        assert gate.get_status().reason == "cutscene"


class TestInitiativeGate:
    def test_only_current_turn_acts(self) -> None:
        gate = InitiativeGate("charA")
        assert gate.can_act("u1", "charA")
        assert not gate.can_act("u2", "charB")

    def test_advance_once_current_acted(self) -> None:
        gate = InitiativeGate("charA")
        assert not gate.can_advance([_action("u2", "charB")], 2)
        assert gate.can_advance([_action("u1", "charA")], 2)

    def test_set_current_turn_rotates(self) -> None:
        gate = InitiativeGate("charA")
        gate.set_current_turn("charB")
        assert gate.current_turn_character_id == "charB"
        assert gate.can_act("u2", "charB")
        assert not gate.can_act("u1", "charA")

    def test_default_reason(self) -> None:
        assert InitiativeGate("charA").get_status().reason == "Combat turn in progress"


class TestGateForRestriction:
    def test_empty_list_lifts_restriction(self) -> None:
        assert isinstance(gate_for_restriction([], "lifted"), AllActorsGate)

    def test_non_empty_list_restricts(self) -> None:
        gate = gate_for_restriction(["charB"], "r")
        assert isinstance(gate, RestrictedGate)
        assert gate.allowed_character_ids == ("charB",)
