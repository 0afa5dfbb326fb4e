"""
Scoreboard action tags.

Rules:
- Values are the exact wire tags carried in {"action": tag} payloads.
- No behavior beyond tag parsing.
- Dispatch is defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class Action(str, Enum):
    """
    Actions either peer may request.

    ACKNOWLEDGE_WIN is local-only (dismisses the win alert) and is never
    put on the wire.
    """

    INCREMENT_TEAM1 = "incrementTeam1"
    DECREMENT_TEAM1 = "decrementTeam1"
    INCREMENT_TEAM2 = "incrementTeam2"
    DECREMENT_TEAM2 = "decrementTeam2"
    START_GAME = "startGame"
    RESET_GAME = "resetGame"
    REQUEST_STATE = "requestState"
    ACKNOWLEDGE_WIN = "acknowledgeWin"

    @classmethod
    def parse_wire(cls, tag: object) -> Action | None:
        """
        Parse an inbound wire tag.

        Returns None for unknown tags, non-string tags and local-only actions.
        """
        if not isinstance(tag, str):
            return None
        try:
            action = cls(tag)
        except ValueError:
            return None
        if action is cls.ACKNOWLEDGE_WIN:
            return None
        return action
