"""
Runtime execution shell for one peer (phone or watch).

Responsibilities:
- Own the peer state (game replica + connection status)
- Call the pure reducer
- Execute commands with side effects (pushes, requests, replies, logs)
- Marshal transport callbacks onto the owning event loop
- Notify presentation listeners after every state change

Non-responsibilities:
- Deciding anything; every decision lives in the reducer
- Socket handling; that belongs to the transport
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import time
from typing import Callable

from adapters.transport.base import PeerUnreachable, TransportChannel, TransportError
from constants import REPLY_TIMEOUT_MS
from observability.logger import log_event
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
from scorekeeper.events import (
    ActivationCompleted,
    ActivationRequested,
    Event,
    EventType,
    LocalAction,
)
from scorekeeper.game_state import GameState, PeerState
from scorekeeper.reducer import reduce
from scorekeeper.requests import PendingRequests
from session.connection_status import ConnectionStatus


StateListener = Callable[[PeerState], None]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Peer:
    """
    Runtime execution boundary for one side of the pairing.

    The same class runs both peers; the role decides (in the reducer)
    whether actions are applied here or forwarded to the other side.

    Guarantees:
    - Reducer is called exactly once per incoming event
    - State is swapped before any side effect runs
    - All state changes happen on one event loop (the one bound by start()
      or by the first handle_event call); handle_event from any other loop
      raises RuntimeError
    - Errors from the transport are logged, never raised to callers
    """

    def __init__(
        self,
        *,
        role: Role,
        transport: TransportChannel,
        reply_timeout_ms: int = REPLY_TIMEOUT_MS,
        sync_application_context: bool = False,
    ) -> None:
        self._state = PeerState(
            role=role,
            sync_application_context=sync_application_context,
        )
        self._transport = transport
        self._loop: asyncio.AbstractEventLoop | None = None
        self._listeners: list[StateListener] = []

        self._requests = PendingRequests(
            send_request=transport.send_request,
            emit_event=self.handle_event,
            timeout_ms=reply_timeout_ms,
        )

        transport.attach(self.handle_event)

    # ------------------------------------------------------------------
    # Published state
    # ------------------------------------------------------------------

    @property
    def state(self) -> PeerState:
        """
        Current immutable peer state.

        Replaced wholesale by the runtime; consumers must never try to
        modify it.
        """
        return self._state

    @property
    def role(self) -> Role:
        return self._state.role

    @property
    def game(self) -> GameState:
        return self._state.game

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._state.connection_status

    @property
    def is_connected(self) -> bool:
        return self._state.connection_status is ConnectionStatus.UP

    @property
    def pending_requests(self) -> int:
        return self._requests.in_flight

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a presentation callback, invoked after each state change.

        Returns a function that unregisters it.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Bind to the running loop and activate the transport.

        Activation failures are reported as a failed ActivationCompleted;
        nothing is retried.
        """
        self._loop = asyncio.get_running_loop()
        await self.handle_event(
            ActivationRequested(event_type=EventType.ACTIVATION_REQUESTED, ts_ms=_now_ms())
        )
        try:
            await self._transport.activate()
        except TransportError as e:
            await self.handle_event(
                ActivationCompleted(
                    event_type=EventType.ACTIVATION_COMPLETED,
                    ts_ms=_now_ms(),
                    reachable=False,
                    error=f"{type(e).__name__}: {e}",
                )
            )

    async def shutdown(self) -> None:
        """Cancel in-flight requests and close the transport."""
        await self._requests.cancel_all()
        await self._transport.close()

    async def drain(self) -> None:
        """Wait for all in-flight request/reply exchanges to finish."""
        await self._requests.drain()

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    async def dispatch(self, action: Action) -> None:
        """Entry point for the presentation layer."""
        await self.handle_event(
            LocalAction(event_type=EventType.LOCAL_ACTION, ts_ms=_now_ms(), action=action)
        )

    def post_event(self, event: Event) -> concurrent.futures.Future[None]:
        """
        Thread-safe entry point for transports delivering off-loop.

        Marshals the event onto the owning loop; the returned future
        completes once the event has been handled.
        """
        if self._loop is None:
            raise RuntimeError("Peer not started; no owning loop to marshal onto")
        return asyncio.run_coroutine_threadsafe(self.handle_event(event), self._loop)

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the pipeline.

        Processing steps:
        1. Check we are on the owning loop
        2. Pass the current state and event to the pure reducer
        3. Swap in the new state
        4. Notify listeners if the state changed
        5. Execute commands in order
        """
        loop = asyncio.get_running_loop()
        if self._loop is None:
            self._loop = loop
        elif loop is not self._loop:
            raise RuntimeError(
                f"{self.role.value} peer event {event.event_type.value} handled off its "
                "owning loop; deliver it with post_event()"
            )

        prev = self._state
        new_state, commands = reduce(prev, event)
        self._state = new_state

        if new_state != prev:
            self._notify(new_state)

        for cmd in commands:
            await self._execute(cmd)

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    async def _execute(self, cmd: Command) -> None:
        if isinstance(cmd, LogEvent):
            log_event(cmd.event)
            return

        if isinstance(cmd, PushSnapshot):
            await self._push(cmd)
            return

        if isinstance(cmd, UpdateContext):
            try:
                await self._transport.update_context(cmd.snapshot)
            except TransportError as e:
                self._log_send_error("UPDATE_CONTEXT_FAILED", e)
            return

        if isinstance(cmd, SendActionRequest):
            self._send_action(cmd.action)
            return

        if isinstance(cmd, SendReply):
            try:
                await self._transport.reply(cmd.request_id, cmd.snapshot)
            except TransportError as e:
                self._log_send_error("REPLY_FAILED", e, request_id=cmd.request_id)
            return

        log_event({
            "ts_ms": _now_ms(),
            "level": "WARNING",
            "peer": self.role.value,
            "event_type": "UNKNOWN_COMMAND",
            "command_type": getattr(cmd, "command_type", None),
        })

    async def _push(self, cmd: PushSnapshot) -> None:
        if not self._transport.is_reachable:
            log_event({
                "ts_ms": _now_ms(),
                "peer": self.role.value,
                "event_type": "PUSH_SKIPPED_UNREACHABLE",
                "snapshot": cmd.snapshot,
            })
            return
        try:
            await self._transport.send_message(cmd.snapshot)
        except TransportError as e:
            self._log_send_error("PUSH_FAILED", e)

    def _send_action(self, action: Action) -> None:
        if not self._transport.is_reachable:
            # Dropped, not queued; the replica stays as it was
            log_event({
                "ts_ms": _now_ms(),
                "peer": self.role.value,
                "event_type": "ACTION_DROPPED_UNREACHABLE",
                "action": action.value,
            })
            return

        request_id = self._requests.submit(action)
        log_event({
            "ts_ms": _now_ms(),
            "peer": self.role.value,
            "event_type": "ACTION_REQUEST_SENT",
            "action": action.value,
            "request_id": request_id,
        })

    def _log_send_error(self, event_type: str, exc: TransportError, **details: object) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "level": "INFO" if isinstance(exc, PeerUnreachable) else "WARNING",
            "peer": self.role.value,
            "event_type": event_type,
            "exception": type(exc).__name__,
            "message": str(exc),
            **details,
        })

    def _notify(self, state: PeerState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "level": "ERROR",
                    "peer": self.role.value,
                    "event_type": "LISTENER_ERROR",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
