"""
Pairing transport contract.

This module defines the *interface* plus the small pieces every concrete
transport shares. No reconciliation or game logic lives here.

Key invariants:
- A transport emits events into the sink it was attached to; it never calls
  the reducer and never touches a game replica.
- Every inbound delivery is a full mapping (action or snapshot); ordering
  across messages is not guaranteed.
- send_message / send_request fail fast with PeerUnreachable when the peer
  is not reachable. Nothing is queued for later delivery except the
  latest-only passive context snapshot.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Protocol, cast, runtime_checkable
from uuid import uuid4

from constants import (
    ENVELOPE_KIND_CONTEXT,
    ENVELOPE_KIND_MESSAGE,
    ENVELOPE_KIND_REPLY,
    ENVELOPE_KIND_REQUEST,
)
from observability.logger import log_event
from protocol.envelope import Envelope, EnvelopeError, decode_envelope, encode_envelope
from scorekeeper.events import (
    ContextReceived,
    Event,
    EventType,
    MessageReceived,
    ReachabilityChanged,
    RequestReceived,
)


EventSink = Callable[[Event], Awaitable[None]]


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------

class TransportError(Exception):
    """Base class for pairing transport failures."""


class PeerUnreachable(TransportError):
    """The peer is not reachable; the send was not attempted or was lost."""


class TransportNotAttached(TransportError):
    """activate() was called before an event sink was attached."""


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def now_ms() -> int:
    return time.time_ns() // 1_000_000


def new_request_id() -> str:
    return f"req_{uuid4().hex[:12]}"


# ---------------------------------------------------------------------
# Transport protocol
# ---------------------------------------------------------------------

@runtime_checkable
class TransportChannel(Protocol):
    """
    Bidirectional, session-oriented pairing link.

    Contract:
    - attach() must be called before activate()
    - activate() finishes by emitting exactly one ActivationCompleted
    - Reachability transitions are emitted as ReachabilityChanged
    - reply() answers a RequestReceived by its request_id
    """

    @property
    def is_reachable(self) -> bool: ...

    def attach(self, emit_event: EventSink) -> None: ...

    async def activate(self) -> None: ...

    async def send_message(self, payload: dict[str, Any]) -> None: ...

    async def send_request(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def reply(self, request_id: str, payload: dict[str, Any]) -> None: ...

    async def update_context(self, payload: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------
# Outstanding replies
# ---------------------------------------------------------------------

class PendingReplies:
    """
    Futures for requests this side sent and is still waiting on.

    Keyed by wire request id. A future is removed as soon as it resolves,
    fails, or its awaiting caller is cancelled (e.g. by a reply timeout).
    """

    def __init__(self) -> None:
        self._futures: dict[str, asyncio.Future[dict[str, Any]]] = {}

    def __len__(self) -> int:
        return len(self._futures)

    def register(self, request_id: str) -> asyncio.Future[dict[str, Any]]:
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._futures[request_id] = fut
        return fut

    def discard(self, request_id: str) -> None:
        self._futures.pop(request_id, None)

    async def wait(self, request_id: str, fut: asyncio.Future[dict[str, Any]]) -> dict[str, Any]:
        try:
            return await fut
        finally:
            self.discard(request_id)

    def resolve(self, request_id: str | None, payload: dict[str, Any]) -> bool:
        """Complete a waiting request. Returns False for unknown/late ids."""
        if request_id is None:
            return False
        fut = self._futures.pop(request_id, None)
        if fut is None or fut.done():
            return False
        fut.set_result(payload)
        return True

    def fail_all(self, exc: Exception) -> None:
        """Fail every waiting request, e.g. when the link drops."""
        futures = list(self._futures.values())
        self._futures.clear()
        for fut in futures:
            if not fut.done():
                fut.set_exception(exc)


# ---------------------------------------------------------------------
# Envelope-framed transports (WebSocket server / client)
# ---------------------------------------------------------------------

class EnvelopeTransport(ABC):
    """
    Shared behavior for transports that carry JSON envelopes over a socket.

    Subclasses own the socket and implement _send_text(); inbound text frames
    are handed to _handle_text().
    """

    def __init__(self, *, name: str) -> None:
        self._name = name
        self._emit_event: EventSink | None = None
        self._pending = PendingReplies()
        self._context: dict[str, Any] | None = None

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def is_reachable(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def _send_text(self, text: str) -> None:
        """
        Write one text frame.

        Must raise PeerUnreachable if the socket is gone or closes mid-send.
        """
        raise NotImplementedError

    # ------------------------------------------------------------------
    # TransportChannel
    # ------------------------------------------------------------------

    def attach(self, emit_event: EventSink) -> None:
        self._emit_event = emit_event

    async def send_message(self, payload: dict[str, Any]) -> None:
        await self._send(Envelope(kind=ENVELOPE_KIND_MESSAGE, payload=payload))

    async def send_request(self, payload: dict[str, Any]) -> dict[str, Any]:
        request_id = new_request_id()
        fut = self._pending.register(request_id)
        try:
            await self._send(Envelope(kind=ENVELOPE_KIND_REQUEST, payload=payload, id=request_id))
        except BaseException:
            self._pending.discard(request_id)
            raise
        return await self._pending.wait(request_id, fut)

    async def reply(self, request_id: str, payload: dict[str, Any]) -> None:
        await self._send(Envelope(kind=ENVELOPE_KIND_REPLY, payload=payload, id=request_id))

    async def update_context(self, payload: dict[str, Any]) -> None:
        """
        Replace the latest-only context snapshot.

        Sent now if the peer is reachable, otherwise on the next connect.
        """
        self._context = dict(payload)
        if self.is_reachable:
            await self._flush_context()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _send(self, envelope: Envelope) -> None:
        if not self.is_reachable:
            raise PeerUnreachable(f"{self._name}: peer not reachable")
        try:
            text = encode_envelope(envelope)
        except EnvelopeError as e:
            raise TransportError(f"{self._name}: cannot encode {envelope.kind}: {e}") from e
        await self._send_text(text)

    async def _flush_context(self) -> None:
        if self._context is None:
            return
        payload = self._context
        self._context = None
        try:
            await self._send(Envelope(kind=ENVELOPE_KIND_CONTEXT, payload=payload))
        except PeerUnreachable:
            # Keep it for the next connect unless something newer arrived
            if self._context is None:
                self._context = payload

    async def _emit(self, event: Event) -> None:
        if self._emit_event is None:
            log_event({
                "ts_ms": now_ms(),
                "level": "WARNING",
                "event_type": "TRANSPORT_EVENT_WITHOUT_SINK",
                "transport": self._name,
                "dropped_event": event.event_type.value,
            })
            return
        await self._emit_event(event)

    async def _link_up(self) -> None:
        await self._emit(
            ReachabilityChanged(
                event_type=EventType.REACHABILITY_CHANGED,
                ts_ms=now_ms(),
                reachable=True,
            )
        )
        await self._flush_context()

    async def _link_down(self) -> None:
        self._pending.fail_all(PeerUnreachable(f"{self._name}: link dropped"))
        await self._emit(
            ReachabilityChanged(
                event_type=EventType.REACHABILITY_CHANGED,
                ts_ms=now_ms(),
                reachable=False,
            )
        )

    async def _handle_text(self, raw: str | bytes) -> None:
        """Route one inbound frame. Malformed frames are logged and dropped."""
        try:
            env = decode_envelope(raw)
        except EnvelopeError as e:
            log_event({
                "ts_ms": now_ms(),
                "level": "WARNING",
                "event_type": "ENVELOPE_DECODE_ERROR",
                "transport": self._name,
                "error": str(e),
                "payload_preview": str(raw)[:100],
            })
            return

        if env.kind == ENVELOPE_KIND_REPLY:
            if not self._pending.resolve(env.id, env.payload):
                log_event({
                    "ts_ms": now_ms(),
                    "event_type": "LATE_OR_UNKNOWN_REPLY",
                    "transport": self._name,
                    "request_id": env.id,
                })
            return

        event: Event
        if env.kind == ENVELOPE_KIND_REQUEST:
            event = RequestReceived(
                event_type=EventType.REQUEST_RECEIVED,
                ts_ms=now_ms(),
                # decode_envelope rejects requests without an id
                request_id=cast(str, env.id),
                payload=env.payload,
            )
        elif env.kind == ENVELOPE_KIND_CONTEXT:
            event = ContextReceived(
                event_type=EventType.CONTEXT_RECEIVED,
                ts_ms=now_ms(),
                payload=env.payload,
            )
        else:
            event = MessageReceived(
                event_type=EventType.MESSAGE_RECEIVED,
                ts_ms=now_ms(),
                payload=env.payload,
            )

        await self._emit(event)
