"""
Unified event definitions for the peer reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Transport events are emitted by a TransportChannel into Peer.handle_event;
LocalAction comes from the presentation layer; ReplyReceived /
RequestFailed are emitted by the runtime when a request/reply exchange ends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from scorekeeper.enums.action import Action


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (role, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Transport session lifecycle
    # ------------------------------------------------------------------
    ACTIVATION_REQUESTED = "ACTIVATION_REQUESTED"
    ACTIVATION_COMPLETED = "ACTIVATION_COMPLETED"
    REACHABILITY_CHANGED = "REACHABILITY_CHANGED"
    SESSION_DEACTIVATED = "SESSION_DEACTIVATED"

    # ------------------------------------------------------------------
    # Local (presentation layer)
    # ------------------------------------------------------------------
    LOCAL_ACTION = "LOCAL_ACTION"

    # ------------------------------------------------------------------
    # Inbound from peer
    # ------------------------------------------------------------------
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    REQUEST_RECEIVED = "REQUEST_RECEIVED"
    CONTEXT_RECEIVED = "CONTEXT_RECEIVED"

    # ------------------------------------------------------------------
    # Request/reply completion
    # ------------------------------------------------------------------
    REPLY_RECEIVED = "REPLY_RECEIVED"
    REQUEST_FAILED = "REQUEST_FAILED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Session Lifecycle Events
# =============================================================================

@dataclass(frozen=True)
class ActivationRequested(Event):
    """Runtime asked the transport to activate the session."""


@dataclass(frozen=True)
class ActivationCompleted(Event):
    """
    Transport finished activating the session.

    error is set when activation failed; reachable is then False.
    """
    reachable: bool
    error: str | None = None


@dataclass(frozen=True)
class ReachabilityChanged(Event):
    """Peer became reachable or unreachable."""
    reachable: bool


@dataclass(frozen=True)
class SessionDeactivated(Event):
    """Session went inactive or was deactivated by the platform."""
    reason: str | None = None


# =============================================================================
# Local Events
# =============================================================================

@dataclass(frozen=True)
class LocalAction(Event):
    """User invoked an action on this peer's UI."""
    action: Action


# =============================================================================
# Inbound Events
# =============================================================================

@dataclass(frozen=True)
class MessageReceived(Event):
    """
    Fire-and-forget message from the peer.

    Either an action {"action": tag} or a snapshot push.
    """
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RequestReceived(Event):
    """
    Request from the peer expecting a reply.

    The reply is routed back through the transport by request_id.
    """
    request_id: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContextReceived(Event):
    """Passive context snapshot from the peer."""
    payload: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Request/Reply Completion Events
# =============================================================================

@dataclass(frozen=True)
class ReplyReceived(Event):
    """
    Peer answered one of our requests.

    payload is the peer's post-action snapshot.
    """
    request_id: str
    action: Action
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RequestFailed(Event):
    """
    One of our requests ended without a reply.

    reason: "unreachable" | "timeout" | "transport_error"
    """
    request_id: str
    action: Action
    reason: str
