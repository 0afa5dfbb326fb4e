"""
Snapshot serialization for the game replica.

Responsibilities:
- Build the wire snapshot {isGameStarted, team1Score, team2Score}
- Apply an inbound (possibly partial) snapshot field-by-field

Every state transfer between peers is a full-snapshot overwrite, never a
delta, so reordered or stale deliveries are corrected by the next exchange.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from constants import KEY_IS_GAME_STARTED, KEY_TEAM1_SCORE, KEY_TEAM2_SCORE, SNAPSHOT_KEYS
from scorekeeper.game_state import GameState


def to_snapshot(game: GameState) -> dict[str, Any]:
    """Return the wire snapshot for a replica."""
    return {
        KEY_IS_GAME_STARTED: game.is_game_started,
        KEY_TEAM1_SCORE: game.team1_score,
        KEY_TEAM2_SCORE: game.team2_score,
    }


def _valid_score(value: Any) -> bool:
    # bool is an int subclass; True must not become a score of 1
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def has_snapshot_fields(payload: Mapping[str, Any]) -> bool:
    """True if the payload carries at least one snapshot key."""
    return any(key in payload for key in SNAPSHOT_KEYS)


def apply_snapshot(game: GameState, payload: Mapping[str, Any]) -> GameState:
    """
    Overwrite replica fields from whatever subset of the snapshot is present.

    Absent keys, and keys whose value has the wrong type (or a negative
    score), leave the prior local value unchanged. game_winner and
    win_pending_ack are never touched.
    """
    changes: dict[str, Any] = {}

    started = payload.get(KEY_IS_GAME_STARTED)
    if isinstance(started, bool):
        changes["is_game_started"] = started

    team1 = payload.get(KEY_TEAM1_SCORE)
    if _valid_score(team1):
        changes["team1_score"] = team1

    team2 = payload.get(KEY_TEAM2_SCORE)
    if _valid_score(team2):
        changes["team2_score"] = team2

    if not changes:
        return game
    return replace(game, **changes)
