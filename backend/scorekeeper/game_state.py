"""
Game replica and peer state containers.

Rules:
- These dataclasses are pure data models.
- No behavior, no helpers, no derived logic.
- Instances are replaced wholesale by the reducer, never edited in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from scorekeeper.enums.role import Role
from scorekeeper.enums.team import Team
from session.connection_status import ConnectionStatus


# =============================================================================
# Game replica
# =============================================================================

@dataclass(frozen=True)
class GameState:
    """
    One replica of the shared scoreboard.

    Only is_game_started / team1_score / team2_score travel on the wire.
    game_winner and win_pending_ack are computed by the authoritative peer
    and stay local to it.
    """

    is_game_started: bool = False
    team1_score: int = 0
    team2_score: int = 0

    # Set by the win check after an increment; cleared by start/reset
    game_winner: Team | None = None

    # True while the win alert is waiting for the user to dismiss it
    win_pending_ack: bool = False


# =============================================================================
# Peer state
# =============================================================================

@dataclass(frozen=True)
class PeerState:
    """Immutable snapshot of everything the reducer may need for one peer."""

    role: Role
    game: GameState = field(default_factory=GameState)
    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # Authoritative only: also refresh the passive context snapshot on push
    sync_application_context: bool = False
