"""
In-process pairing link.

Two LoopbackTransport endpoints share one LoopbackLink. The link models the
platform pairing layer closely enough to exercise the whole sync protocol
without sockets:

- An endpoint is reachable only while the link is connected AND the other
  endpoint has been activated.
- Deliveries are asynchronous: each one runs as its own task, never inline
  in the sender's call stack.
- Outstanding requests fail with PeerUnreachable when the link drops.
- Context snapshots are latest-only and delivered when reachability returns.

Used by the unit tests and by local demos.
"""

from __future__ import annotations

import asyncio
from typing import Any

from adapters.transport.base import (
    EventSink,
    PeerUnreachable,
    PendingReplies,
    TransportNotAttached,
    new_request_id,
    now_ms,
)
from observability.logger import log_event
from scorekeeper.events import (
    ActivationCompleted,
    ContextReceived,
    Event,
    EventType,
    MessageReceived,
    ReachabilityChanged,
    RequestReceived,
    SessionDeactivated,
)


class LoopbackTransport:
    """One end of a LoopbackLink. Implements TransportChannel."""

    def __init__(self, *, link: LoopbackLink, name: str) -> None:
        self._link = link
        self.name = name
        self._emit_event: EventSink | None = None
        self._pending = PendingReplies()
        self.activated = False

        # Context addressed TO this endpoint, waiting for reachability
        self._inbound_context: dict[str, Any] | None = None

        # Test hook: when False, inbound requests are swallowed unanswered
        self.answer_requests = True

    # ------------------------------------------------------------------
    # TransportChannel
    # ------------------------------------------------------------------

    @property
    def is_reachable(self) -> bool:
        other = self._link.other(self)
        return self.activated and self._link.connected and other.activated

    def attach(self, emit_event: EventSink) -> None:
        self._emit_event = emit_event

    async def activate(self) -> None:
        if self._emit_event is None:
            raise TransportNotAttached(f"{self.name}: attach() before activate()")
        if self.activated:
            return

        other = self._link.other(self)
        other_was_reachable = other.is_reachable
        self.activated = True

        self._link.deliver(
            self,
            ActivationCompleted(
                event_type=EventType.ACTIVATION_COMPLETED,
                ts_ms=now_ms(),
                reachable=self.is_reachable,
            ),
        )
        if other.is_reachable and not other_was_reachable:
            other.notify_reachability(True)
        if self.is_reachable:
            self.flush_context()

    async def send_message(self, payload: dict[str, Any]) -> None:
        if not self.is_reachable:
            raise PeerUnreachable(f"{self.name}: peer not reachable")
        self._link.deliver(
            self._link.other(self),
            MessageReceived(
                event_type=EventType.MESSAGE_RECEIVED,
                ts_ms=now_ms(),
                payload=dict(payload),
            ),
        )

    async def send_request(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.is_reachable:
            raise PeerUnreachable(f"{self.name}: peer not reachable")

        other = self._link.other(self)
        request_id = new_request_id()
        fut = self._pending.register(request_id)

        if other.answer_requests:
            self._link.deliver(
                other,
                RequestReceived(
                    event_type=EventType.REQUEST_RECEIVED,
                    ts_ms=now_ms(),
                    request_id=request_id,
                    payload=dict(payload),
                ),
            )
        return await self._pending.wait(request_id, fut)

    async def reply(self, request_id: str, payload: dict[str, Any]) -> None:
        if not self.is_reachable:
            raise PeerUnreachable(f"{self.name}: peer not reachable, reply lost")
        # Replies travel asynchronously like any other delivery
        self._link.schedule(self._link.other(self).resolve_reply(request_id, dict(payload)))

    async def update_context(self, payload: dict[str, Any]) -> None:
        other = self._link.other(self)
        other.set_inbound_context(dict(payload))
        if self.is_reachable:
            other.flush_context()

    async def close(self) -> None:
        if not self.activated:
            return
        other = self._link.other(self)
        was_reachable = other.is_reachable
        self.activated = False
        self._pending.fail_all(PeerUnreachable(f"{self.name}: closed"))
        self._link.deliver(
            self,
            SessionDeactivated(
                event_type=EventType.SESSION_DEACTIVATED,
                ts_ms=now_ms(),
                reason="closed",
            ),
        )
        if was_reachable:
            other.notify_reachability(False)

    # ------------------------------------------------------------------
    # Link-side helpers
    # ------------------------------------------------------------------

    async def resolve_reply(self, request_id: str, payload: dict[str, Any]) -> None:
        self._pending.resolve(request_id, payload)

    def set_inbound_context(self, payload: dict[str, Any]) -> None:
        self._inbound_context = payload

    def flush_context(self) -> None:
        if self._inbound_context is None:
            return
        payload = self._inbound_context
        self._inbound_context = None
        self._link.deliver(
            self,
            ContextReceived(
                event_type=EventType.CONTEXT_RECEIVED,
                ts_ms=now_ms(),
                payload=payload,
            ),
        )

    def notify_reachability(self, reachable: bool) -> None:
        if not reachable:
            self._pending.fail_all(PeerUnreachable(f"{self.name}: link dropped"))
        self._link.deliver(
            self,
            ReachabilityChanged(
                event_type=EventType.REACHABILITY_CHANGED,
                ts_ms=now_ms(),
                reachable=reachable,
            ),
        )
        if reachable:
            self.flush_context()

    async def emit(self, event: Event) -> None:
        if self._emit_event is not None:
            await self._emit_event(event)


class LoopbackLink:
    """
    Paired phone/watch endpoints sharing one simulated radio link.

    connected starts True; set_connected() simulates the watch walking out
    of range and back.
    """

    def __init__(self, *, connected: bool = True) -> None:
        self.connected = connected
        self.phone = LoopbackTransport(link=self, name="phone")
        self.watch = LoopbackTransport(link=self, name="watch")
        self._deliveries: set[asyncio.Task[None]] = set()

    def other(self, endpoint: LoopbackTransport) -> LoopbackTransport:
        return self.watch if endpoint is self.phone else self.phone

    def set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        before = {ep: ep.is_reachable for ep in (self.phone, self.watch)}
        self.connected = connected
        for ep, was_reachable in before.items():
            if ep.is_reachable != was_reachable:
                ep.notify_reachability(ep.is_reachable)

    def deliver(self, endpoint: LoopbackTransport, event: Event) -> None:
        self.schedule(endpoint.emit(event))

    def schedule(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._deliveries.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._deliveries.discard(t)
            if not t.cancelled() and t.exception() is not None:
                log_event({
                    "ts_ms": now_ms(),
                    "level": "ERROR",
                    "event_type": "LOOPBACK_DELIVERY_ERROR",
                    "exception": type(t.exception()).__name__,
                    "message": str(t.exception()),
                })

        task.add_done_callback(_done)

    @property
    def idle(self) -> bool:
        return not self._deliveries

    async def drain(self) -> None:
        """Wait until every scheduled delivery (and any it spawns) has run."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
