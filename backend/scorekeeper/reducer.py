"""
Pure peer reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (role, event) pair is handled or explicitly ignored (logged).

One reducer serves both peers. The role stored in PeerState decides whether
an action is applied here (AUTHORITATIVE) or forwarded to the other peer as
a request (MIRRORING).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from constants import KEY_ACTION
from scorekeeper.commands import (
    Command,
    LogEvent,
    PushSnapshot,
    SendActionRequest,
    SendReply,
    UpdateContext,
)
from scorekeeper.enums.action import Action
from scorekeeper.enums.role import Role
from scorekeeper.enums.team import Team
from scorekeeper.events import (
    ActivationCompleted,
    ActivationRequested,
    ContextReceived,
    Event,
    LocalAction,
    MessageReceived,
    ReachabilityChanged,
    ReplyReceived,
    RequestFailed,
    RequestReceived,
    SessionDeactivated,
)
from scorekeeper.game_state import GameState, PeerState
from scorekeeper.rules import check_for_win
from scorekeeper.snapshot import apply_snapshot, has_snapshot_fields, to_snapshot
from session.connection_status import ConnectionStatus


Result = tuple[PeerState, tuple[Command, ...]]


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: PeerState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
    *,
    level: str = "INFO",
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "level": level,
            "peer": state.role.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "connection_status": state.connection_status.value,
            "game": to_snapshot(state.game),
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs)


def _ignore(state: PeerState, event: Event, reason: str, **details: Any) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason, **details}),)


def _with_status(state: PeerState, event: Event, status: ConnectionStatus) -> tuple[PeerState, tuple[Command, ...]]:
    if state.connection_status is status:
        return state, ()
    new_state = replace(state, connection_status=status)
    return new_state, (
        _log(
            new_state,
            event,
            "connection_status_changed",
            {"from_status": state.connection_status.value, "to_status": status.value},
        ),
    )


def _push(state: PeerState) -> tuple[Command, ...]:
    """Snapshot fan-out after an authoritative mutation."""
    snapshot = to_snapshot(state.game)
    cmds: tuple[Command, ...] = (PushSnapshot(snapshot=snapshot),)
    if state.sync_application_context:
        cmds += (UpdateContext(snapshot=dict(snapshot)),)
    return cmds


# =============================================================================
# Game mutations (authoritative only)
# =============================================================================

def apply_action(game: GameState, action: Action) -> GameState:
    """
    Apply one scoreboard action to a replica.

    REQUEST_STATE is a no-op here; the caller pushes the snapshot.
    """
    if action is Action.START_GAME:
        return GameState(is_game_started=True)

    if action is Action.RESET_GAME:
        return GameState(is_game_started=False)

    if action is Action.INCREMENT_TEAM1:
        return check_for_win(replace(game, team1_score=game.team1_score + 1), Team.TEAM1)

    if action is Action.INCREMENT_TEAM2:
        return check_for_win(replace(game, team2_score=game.team2_score + 1), Team.TEAM2)

    if action is Action.DECREMENT_TEAM1:
        if game.team1_score > 0:
            return replace(game, team1_score=game.team1_score - 1)
        return game

    if action is Action.DECREMENT_TEAM2:
        if game.team2_score > 0:
            return replace(game, team2_score=game.team2_score - 1)
        return game

    if action is Action.ACKNOWLEDGE_WIN:
        return replace(game, win_pending_ack=False)

    return game


def _apply_authoritative(state: PeerState, event: Event, action: Action, source: str) -> Result:
    if action is Action.REQUEST_STATE:
        return state, _logs_last(
            _push(state) + (_log(state, event, "state_requested", {"source": source}),)
        )

    new_game = apply_action(state.game, action)
    new_state = replace(state, game=new_game)

    cmds: list[Command] = [
        _log(
            new_state,
            event,
            "action_applied",
            {
                "action": action.value,
                "source": source,
                "from_game": to_snapshot(state.game),
            },
        )
    ]

    if new_game.game_winner is not None and new_game.win_pending_ack and not state.game.win_pending_ack:
        cmds.append(_log(new_state, event, "win_detected", {"winner": new_game.game_winner.value}))

    # Dismissing the alert changes nothing the peer can see
    if action is not Action.ACKNOWLEDGE_WIN:
        cmds.extend(_push(new_state))

    return new_state, _logs_last(tuple(cmds))


# =============================================================================
# Reducer
# =============================================================================

def reduce(state: PeerState, event: Event) -> Result:
    """
    Pure reducer for one peer.

    Given the current peer state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (role, event) pair is handled or explicitly ignored
    - Replica fields are only ever overwritten by a full or partial snapshot
      (mirroring) or by apply_action (authoritative)
    """
    authoritative = state.role is Role.AUTHORITATIVE

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, ActivationRequested):
        return _with_status(state, event, ConnectionStatus.CONNECTING)

    if isinstance(event, ActivationCompleted):
        reachable = event.reachable and event.error is None
        new_state, cmds = _with_status(
            state, event, ConnectionStatus.UP if reachable else ConnectionStatus.DOWN
        )
        if event.error is not None:
            return new_state, cmds + (
                _log(new_state, event, "activation_failed", {"error": event.error}, level="WARNING"),
            )

        cmds += (_log(new_state, event, "activation_completed", {"reachable": event.reachable}),)
        if reachable and not authoritative:
            cmds = (SendActionRequest(action=Action.REQUEST_STATE),) + cmds
        return new_state, _logs_last(cmds)

    if isinstance(event, ReachabilityChanged):
        new_state, cmds = _with_status(
            state, event, ConnectionStatus.UP if event.reachable else ConnectionStatus.DOWN
        )
        cmds += (_log(new_state, event, "reachability_changed", {"reachable": event.reachable}),)
        if event.reachable:
            if authoritative:
                cmds = _push(new_state) + cmds
            else:
                cmds = (SendActionRequest(action=Action.REQUEST_STATE),) + cmds
        return new_state, _logs_last(cmds)

    if isinstance(event, SessionDeactivated):
        new_state, cmds = _with_status(state, event, ConnectionStatus.DOWN)
        return new_state, cmds + (
            _log(new_state, event, "session_deactivated", {"reason": event.reason}),
        )

    # ------------------------------------------------------------------
    # Local UI actions
    # ------------------------------------------------------------------
    if isinstance(event, LocalAction):
        if authoritative:
            return _apply_authoritative(state, event, event.action, "local")

        if event.action is Action.ACKNOWLEDGE_WIN:
            return _ignore(state, event, "win_ack_on_mirror")

        # Mirror never mutates before the authoritative reply
        return state, _logs_last((
            SendActionRequest(action=event.action),
            _log(state, event, "action_forwarded", {"action": event.action.value}),
        ))

    # ------------------------------------------------------------------
    # Inbound from peer
    # ------------------------------------------------------------------
    if isinstance(event, MessageReceived):
        if KEY_ACTION in event.payload:
            if not authoritative:
                return _ignore(state, event, "action_on_mirror", tag=event.payload.get(KEY_ACTION))
            action = Action.parse_wire(event.payload.get(KEY_ACTION))
            if action is None:
                return _ignore(state, event, "unknown_action", tag=repr(event.payload.get(KEY_ACTION)))
            return _apply_authoritative(state, event, action, "remote_message")

        if not has_snapshot_fields(event.payload):
            return _ignore(state, event, "empty_message")

        if authoritative:
            return _ignore(state, event, "snapshot_message_on_authoritative")

        return _apply_snapshot(state, event, event.payload, "message")

    if isinstance(event, RequestReceived):
        if not authoritative:
            return state, _logs_last((
                SendReply(request_id=event.request_id, snapshot=to_snapshot(state.game)),
                _log(state, event, "request_on_mirror", {"request_id": event.request_id}),
            ))

        if KEY_ACTION not in event.payload:
            return _ignore(state, event, "request_without_action", request_id=event.request_id)

        action = Action.parse_wire(event.payload.get(KEY_ACTION))
        if action is None:
            # Unknown tag still gets the current snapshot back
            return state, _logs_last((
                SendReply(request_id=event.request_id, snapshot=to_snapshot(state.game)),
                _log(
                    state,
                    event,
                    "ignore",
                    {"reason": "unknown_action", "tag": repr(event.payload.get(KEY_ACTION))},
                ),
            ))

        new_state, cmds = _apply_authoritative(state, event, action, "remote_request")
        reply = SendReply(request_id=event.request_id, snapshot=to_snapshot(new_state.game))
        return new_state, _logs_last(cmds + (reply,))

    if isinstance(event, ContextReceived):
        if not has_snapshot_fields(event.payload):
            return _ignore(state, event, "empty_context")
        return _apply_snapshot(state, event, event.payload, "context")

    # ------------------------------------------------------------------
    # Request/reply completion
    # ------------------------------------------------------------------
    if isinstance(event, ReplyReceived):
        return _apply_snapshot(
            state,
            event,
            event.payload,
            "reply",
            request_id=event.request_id,
            action=event.action.value,
        )

    if isinstance(event, RequestFailed):
        return state, (
            _log(
                state,
                event,
                "request_failed",
                {
                    "request_id": event.request_id,
                    "action": event.action.value,
                    "reason": event.reason,
                },
                level="WARNING",
            ),
        )

    return _ignore(state, event, "unhandled_event")


def _apply_snapshot(
    state: PeerState,
    event: Event,
    payload: dict[str, Any],
    source: str,
    **details: Any,
) -> Result:
    new_game = apply_snapshot(state.game, payload)
    new_state = replace(state, game=new_game)
    return new_state, (
        _log(
            new_state,
            event,
            "snapshot_applied",
            {"source": source, "from_game": to_snapshot(state.game), **details},
        ),
    )
