"""Turn gates — who may act this round, and when the round may close.

    AllActorsGate    everyone acts; advance once every eligible actor has
    RestrictedGate   only the listed characters; advance once each has acted
    PausedGate       nobody acts; never advances
    InitiativeGate   only the character whose turn it is (combat, reserved)

Gates are replaced wholesale on every restriction or transition; allowed-id
lists are never merged across gates.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Literal, Protocol

from pydantic import BaseModel

from rpg_session.models import PlayerAction

GateType = Literal["all_actors", "restricted", "paused", "initiative"]


class TurnGateStatus(BaseModel):
    type: GateType
    allowed_character_ids: list[str] | None = None  # None = everyone
    reason: str | None = None


class TurnGate(Protocol):
    def can_act(self, user_id: str, character_id: str | None = None) -> bool: ...

    def can_advance(self, actions: Sequence[PlayerAction], total_eligible: int) -> bool: ...

    def get_status(self) -> TurnGateStatus: ...


class AllActorsGate:
    def can_act(self, user_id: str, character_id: str | None = None) -> bool:
        return True

    def can_advance(self, actions: Sequence[PlayerAction], total_eligible: int) -> bool:
        return total_eligible > 0 and len(actions) >= total_eligible

    def get_status(self) -> TurnGateStatus:
        return TurnGateStatus(type="all_actors")

    def __repr__(self) -> str:
        return "AllActorsGate()"


class RestrictedGate:
    def __init__(self, allowed_character_ids: Iterable[str], reason: str) -> None:
        self._allowed = tuple(allowed_character_ids)
        self._reason = reason

    @property
    def allowed_character_ids(self) -> tuple[str, ...]:
        return self._allowed

    def can_act(self, user_id: str, character_id: str | None = None) -> bool:
        return character_id is not None and character_id in self._allowed

    def can_advance(self, actions: Sequence[PlayerAction], total_eligible: int) -> bool:
        acted = {a.character_id for a in actions if a.character_id}
        return all(cid in acted for cid in self._allowed)

    def get_status(self) -> TurnGateStatus:
        return TurnGateStatus(
            type="restricted",
            allowed_character_ids=list(self._allowed),
            reason=self._reason,
        )

    def __repr__(self) -> str:
        return f"RestrictedGate({list(self._allowed)!r}, {self._reason!r})"


class PausedGate:
    """Hard stop on input, e.g. while an interrupt is being resolved."""

    def __init__(self, reason: str) -> None:
        self._reason = reason

    def can_act(self, user_id: str, character_id: str | None = None) -> bool:
        return False

    def can_advance(self, actions: Sequence[PlayerAction], total_eligible: int) -> bool:
        return False

    def get_status(self) -> TurnGateStatus:
        return TurnGateStatus(type="paused", reason=self._reason)

    def __repr__(self) -> str:
        return f"PausedGate({self._reason!r})"


class InitiativeGate:
    def __init__(self, current_turn_character_id: str, reason: str | None = None) -> None:
        self._current = current_turn_character_id
        self._reason = reason

    @property
    def current_turn_character_id(self) -> str:
        return self._current

    def set_current_turn(self, character_id: str) -> None:
        self._current = character_id

    def can_act(self, user_id: str, character_id: str | None = None) -> bool:
        return character_id == self._current

    def can_advance(self, actions: Sequence[PlayerAction], total_eligible: int) -> bool:
        return any(a.character_id == self._current for a in actions)

    def get_status(self) -> TurnGateStatus:
        return TurnGateStatus(
            type="initiative",
            allowed_character_ids=[self._current],
            reason=self._reason or "Combat turn in progress",
        )

    def __repr__(self) -> str:
        return f"InitiativeGate({self._current!r})"


def gate_for_restriction(allowed_character_ids: Sequence[str], reason: str) -> TurnGate:
    """Map a restriction request to a gate; an empty list lifts all restriction."""
    if not allowed_character_ids:
        return AllActorsGate()
    return RestrictedGate(allowed_character_ids, reason)
