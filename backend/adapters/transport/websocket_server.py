"""
Phone end of the pairing link, served over a FastAPI WebSocket.

Role in the system:
- The phone process is long-lived; watch connections come and go.
- serve(ws) is called by the /ws route for each accepted connection and
  returns when that connection ends.
- Reachability is True exactly while one watch socket is being served (and
  the transport has been activated).
- A second concurrent watch is refused with close code 1013.

Architectural constraints:
- No game logic here; inbound frames become events for the Peer runtime.
- Outstanding requests fail with PeerUnreachable when the socket drops.
"""

from __future__ import annotations

from fastapi import WebSocket, WebSocketDisconnect

from adapters.transport.base import (
    EnvelopeTransport,
    PeerUnreachable,
    TransportNotAttached,
    now_ms,
)
from constants import WS_CLOSE_NORMAL, WS_CLOSE_TRY_AGAIN_LATER
from observability.logger import log_event
from scorekeeper.events import ActivationCompleted, EventType


class WebSocketServerTransport(EnvelopeTransport):
    """Implements TransportChannel for the authoritative (phone) peer."""

    def __init__(self) -> None:
        super().__init__(name="phone_ws")
        self._ws: WebSocket | None = None
        self._activated = False

    # ------------------------------------------------------------------
    # TransportChannel
    # ------------------------------------------------------------------

    @property
    def is_reachable(self) -> bool:
        return self._activated and self._ws is not None

    async def activate(self) -> None:
        if self._emit_event is None:
            raise TransportNotAttached(f"{self._name}: attach() before activate()")
        self._activated = True
        await self._emit(
            ActivationCompleted(
                event_type=EventType.ACTIVATION_COMPLETED,
                ts_ms=now_ms(),
                reachable=self.is_reachable,
            )
        )

    async def close(self) -> None:
        self._activated = False
        ws = self._ws
        if ws is not None:
            try:
                await ws.close(code=WS_CLOSE_NORMAL)
            except RuntimeError:
                # Already closed by the client
                pass

    # ------------------------------------------------------------------
    # Connection lifecycle (called by the /ws route)
    # ------------------------------------------------------------------

    async def serve(self, ws: WebSocket) -> None:
        """
        Pump one accepted watch connection until it disconnects.

        The caller must have already accepted the socket.
        """
        if self._ws is not None:
            log_event({
                "ts_ms": now_ms(),
                "level": "WARNING",
                "event_type": "SECOND_WATCH_REFUSED",
                "transport": self._name,
            })
            await ws.close(code=WS_CLOSE_TRY_AGAIN_LATER)
            return

        self._ws = ws
        log_event({
            "ts_ms": now_ms(),
            "event_type": "WATCH_CONNECTED",
            "transport": self._name,
        })

        try:
            if self._activated:
                await self._link_up()

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    # Also the ack of a close the phone started
                    raise WebSocketDisconnect(code=msg.get("code", WS_CLOSE_NORMAL))

                if msg.get("text") is not None:
                    await self._handle_text(msg["text"])

        except WebSocketDisconnect as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WATCH_DISCONNECTED",
                "transport": self._name,
                "code": e.code,
            })

        finally:
            self._ws = None
            if self._activated:
                await self._link_down()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _send_text(self, text: str) -> None:
        ws = self._ws
        if ws is None:
            raise PeerUnreachable(f"{self._name}: no watch connected")
        try:
            await ws.send_text(text)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise PeerUnreachable(f"{self._name}: send failed: {e!r}") from e
