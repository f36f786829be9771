"""Per-round action collection and the shared action-summary format."""

from __future__ import annotations

from collections.abc import Sequence

from rpg_session.models import PlayerAction
from rpg_session.turn_gate import TurnGate


def format_actions(actions: Sequence[PlayerAction]) -> str:
    """One line per action, `[displayName] actionText`, in submission order."""
    return "\n".join(f"[{a.display_name}] {a.action}" for a in actions)


class ActionCollector:
    """Pending actions for the current round; one per user."""

    def __init__(self) -> None:
        self._actions: list[PlayerAction] = []

    def add(self, action: PlayerAction) -> None:
        """Queue an action. A resubmission replaces the user's earlier one in place."""
        for i, existing in enumerate(self._actions):
            if existing.user_id == action.user_id:
                self._actions[i] = action
                return
        self._actions.append(action)

    def pending(self) -> list[PlayerAction]:
        return list(self._actions)

    def drain(self) -> list[PlayerAction]:
        actions, self._actions = self._actions, []
        return actions

    def has_all_acted(self, member_count: int, gate: TurnGate) -> bool:
        return gate.can_advance(self._actions, member_count)

    def __len__(self) -> int:
        return len(self._actions)
