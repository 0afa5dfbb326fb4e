"""
Side-effect command definitions for the peer runtime.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from scorekeeper.enums.action import Action

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    Stable discriminants used for logging and runtime dispatch.
    """

    # Peer transport
    PUSH_SNAPSHOT = "PUSH_SNAPSHOT"
    UPDATE_CONTEXT = "UPDATE_CONTEXT"
    SEND_ACTION_REQUEST = "SEND_ACTION_REQUEST"
    SEND_REPLY = "SEND_REPLY"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class PushSnapshot(Command):
    """
    Best-effort fire-and-forget push of the full snapshot to the peer.

    Dropped (logged) when the peer is unreachable. Never retried.
    """
    snapshot: dict[str, Any]
    command_type: CommandType = CommandType.PUSH_SNAPSHOT


@dataclass(frozen=True)
class UpdateContext(Command):
    """Replace the passive context snapshot held by the transport."""
    snapshot: dict[str, Any]
    command_type: CommandType = CommandType.UPDATE_CONTEXT


@dataclass(frozen=True)
class SendActionRequest(Command):
    """
    Ask the peer to apply an action and reply with its snapshot.

    Dropped (logged) when the peer is unreachable. Never queued.
    """
    action: Action
    command_type: CommandType = CommandType.SEND_ACTION_REQUEST


@dataclass(frozen=True)
class SendReply(Command):
    """Answer an inbound request with a snapshot."""
    request_id: str
    snapshot: dict[str, Any]
    command_type: CommandType = CommandType.SEND_REPLY


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Structured log line produced by a reducer decision."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
