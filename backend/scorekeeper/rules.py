"""
Scoring rule helpers.

Purpose:
- Keep the win condition in one place
- Keep reducer pure

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import replace

from constants import WIN_MARGIN, WIN_TARGET_SCORE
from scorekeeper.enums.team import Team
from scorekeeper.game_state import GameState


def is_winning_score(score: int, opponent_score: int) -> bool:
    """True iff score reaches the target with the required lead."""
    return score >= WIN_TARGET_SCORE and score - opponent_score >= WIN_MARGIN


def check_for_win(game: GameState, scorer: Team) -> GameState:
    """
    Evaluate the win condition for the team that just scored.

    Called only after an increment; decrements never reach here. A winning
    score sets game_winner and raises win_pending_ack. A non-winning score
    leaves any earlier winner untouched.
    """
    if scorer is Team.TEAM1:
        won = is_winning_score(game.team1_score, game.team2_score)
    else:
        won = is_winning_score(game.team2_score, game.team1_score)

    if not won:
        return game

    return replace(game, game_winner=scorer, win_pending_ack=True)
