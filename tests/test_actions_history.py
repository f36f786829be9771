"""Tests for rpg_session.actions and rpg_session.history."""

from rpg_session.actions import ActionCollector, format_actions
from rpg_session.history import ConversationHistory
from rpg_session.models import ConversationTurn, PlayerAction
from rpg_session.turn_gate import AllActorsGate, RestrictedGate


def _action(user_id: str, text: str = "act", **kw) -> PlayerAction:
    return PlayerAction(user_id=user_id, username=user_id, action=text, **kw)


def _turn(n: int) -> ConversationTurn:
    return ConversationTurn(user_inputs=[_action("u1", f"action {n}")], assistant_response=f"reply {n}")


class TestFormatActions:
    def test_one_line_per_action_in_order(self) -> None:
        actions = [
            _action("u1", "I pick the lock", character_name="Aria"),
            _action("bob", "I keep watch"),
        ]
        assert format_actions(actions) == "[Aria] I pick the lock\n[bob] I keep watch"

    def test_empty(self) -> None:
        assert format_actions([]) == ""


class TestActionCollector:
    def test_resubmission_replaces_in_place(self) -> None:
        c = ActionCollector()
        c.add(_action("u1", "first"))
        c.add(_action("u2", "second"))
        c.add(_action("u1", "changed my mind"))
        assert [(a.user_id, a.action) for a in c.pending()] == [
            ("u1", "changed my mind"), ("u2", "second"),
        ]

    def test_drain_empties(self) -> None:
        c = ActionCollector()
        c.add(_action("u1"))
        drained = c.drain()
        assert len(drained) == 1
        assert len(c) == 0
        assert c.pending() == []

    def test_pending_is_a_copy(self) -> None:
        c = ActionCollector()
        c.add(_action("u1"))
        c.pending().clear()
        assert len(c) == 1

    def test_has_all_acted_delegates_to_gate(self) -> None:
        c = ActionCollector()
        c.add(_action("u1", character_id="charA"))
        assert not c.has_all_acted(2, AllActorsGate())
        assert c.has_all_acted(2, RestrictedGate(["charA"], "r"))


class TestConversationHistory:
    def test_trims_oldest(self) -> None:
        h = ConversationHistory(max_turns=3)
        for i in range(5):
            h.add(_turn(i))
        assert [t.assistant_response for t in h.all()] == ["reply 2", "reply 3", "reply 4"]

    def test_recent(self) -> None:
        h = ConversationHistory()
        for i in range(4):
            h.add(_turn(i))
        assert [t.assistant_response for t in h.recent(2)] == ["reply 2", "reply 3"]
        assert h.recent(0) == []

    def test_set_history_respects_limit(self) -> None:
        h = ConversationHistory(max_turns=2)
        h.set_history([_turn(i) for i in range(4)])
        assert len(h) == 2

    def test_to_messages_skips_empty_reply(self) -> None:
        h = ConversationHistory()
        h.add(ConversationTurn(user_inputs=[_action("u1", "wait")], assistant_response=""))
        h.add(_turn(1))
        messages = h.to_messages()
        assert [m.role for m in messages] == ["user", "user", "assistant"]

    def test_clear(self) -> None:
        h = ConversationHistory()
        h.add(_turn(1))
        h.clear()
        assert len(h) == 0
