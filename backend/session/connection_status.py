"""
Connection status tracking for a pairing session.

Connection lifecycle is tracked separately from the game replica:
connection_status: DOWN | CONNECTING | UP

Only the transport's activation and reachability signals move it.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Peer reachability as last reported by the transport.

    Independent of the game state; a game may be running with any status.
    """
    DOWN = "DOWN"              # Peer unreachable or session inactive
    CONNECTING = "CONNECTING"  # Activation requested, completion pending
    UP = "UP"                  # Peer reachable
