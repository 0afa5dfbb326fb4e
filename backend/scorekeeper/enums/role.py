"""
Peer role enumeration.

Roles are orthogonal to connection status:
- Role answers:   "Who applies mutations?"
- Status answers: "Can I reach the other peer right now?"
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """
    Role of a peer in the pairing.

    AUTHORITATIVE:
        The phone. Applies every action directly and pushes snapshots.

    MIRRORING:
        The watch. Never mutates before the phone replies; overwrites its
        replica from replies, pushes and context snapshots.
    """

    AUTHORITATIVE = "AUTHORITATIVE"
    MIRRORING = "MIRRORING"
