from __future__ import annotations

from enum import Enum


class Team(str, Enum):
    """Winning team label, as shown in the win alert."""

    TEAM1 = "Team 1"
    TEAM2 = "Team 2"
