"""Bounded record of completed turns, replayed to the narrator as chat history."""

from __future__ import annotations

from collections.abc import Iterable

from rpg_session.actions import format_actions
from rpg_session.llm import ChatMessage
from rpg_session.models import ConversationTurn


class ConversationHistory:
    def __init__(self, max_turns: int = 20) -> None:
        self._max_turns = max_turns
        self._turns: list[ConversationTurn] = []

    def add(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)
        if len(self._turns) > self._max_turns:
            del self._turns[: len(self._turns) - self._max_turns]

    def recent(self, count: int) -> list[ConversationTurn]:
        if count <= 0:
            return []
        return self._turns[-count:]

    def all(self) -> list[ConversationTurn]:
        return list(self._turns)

    def set_history(self, turns: Iterable[ConversationTurn]) -> None:
        self._turns = []
        for turn in turns:
            self.add(turn)

    def clear(self) -> None:
        self._turns = []

    def to_messages(self) -> list[ChatMessage]:
        """Each turn becomes a user message (the actions) and an assistant reply."""
        messages: list[ChatMessage] = []
        for turn in self._turns:
            messages.append(ChatMessage(role="user", content=format_actions(turn.user_inputs)))
            if turn.assistant_response:
                messages.append(ChatMessage(role="assistant", content=turn.assistant_response))
        return messages

    def __len__(self) -> int:
        return len(self._turns)
