"""
Watch end of the pairing link, a WebSocket client to the phone.

Core model:
- One background task owns the connection for the transport's lifetime.
- The socket reconnects after WATCH_RECONNECT_DELAY_S whenever it drops;
  this is the link coming back into range, not a retry of any message.
- activate() waits for the first connection attempt, then emits
  ActivationCompleted with the resulting reachability.
- Every later connect / disconnect is a ReachabilityChanged.

Design constraints:
- Transport must not call reducer directly.
- Messages sent while disconnected fail with PeerUnreachable; nothing is
  queued.
"""

from __future__ import annotations

import asyncio

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from adapters.transport.base import (
    EnvelopeTransport,
    PeerUnreachable,
    TransportNotAttached,
    now_ms,
)
from constants import WATCH_RECONNECT_DELAY_S
from observability.logger import log_event
from scorekeeper.events import ActivationCompleted, EventType


class WebSocketClientTransport(EnvelopeTransport):
    """Implements TransportChannel for the mirroring (watch) peer."""

    def __init__(
        self,
        *,
        url: str,
        reconnect_delay_s: float = WATCH_RECONNECT_DELAY_S,
        open_timeout_s: float = 5.0,
    ) -> None:
        super().__init__(name="watch_ws")
        self._url = url
        self._reconnect_delay_s = reconnect_delay_s
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._first_attempt_done = asyncio.Event()
        self._activation_reported = False
        self._closing = False

    # ------------------------------------------------------------------
    # TransportChannel
    # ------------------------------------------------------------------

    @property
    def is_reachable(self) -> bool:
        return self._ws is not None

    async def activate(self) -> None:
        if self._emit_event is None:
            raise TransportNotAttached(f"{self._name}: attach() before activate()")
        if self._run_task is not None:
            return

        self._run_task = asyncio.create_task(self._run())
        await self._first_attempt_done.wait()

        self._activation_reported = True
        await self._emit(
            ActivationCompleted(
                event_type=EventType.ACTIVATION_COMPLETED,
                ts_ms=now_ms(),
                reachable=self.is_reachable,
            )
        )

    async def close(self) -> None:
        self._closing = True

        task = self._run_task
        self._run_task = None

        ws = self._ws
        if ws is not None:
            await ws.close()

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            while not self._closing:
                await self._connect_once()
                self._first_attempt_done.set()
                if self._closing:
                    break
                await asyncio.sleep(self._reconnect_delay_s)
        except asyncio.CancelledError:
            return
        finally:
            self._first_attempt_done.set()

    async def _connect_once(self) -> None:
        try:
            ws = await connect(self._url, open_timeout=self._open_timeout_s)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "PHONE_CONNECT_FAILED",
                "transport": self._name,
                "url": self._url,
                "error": repr(e),
            })
            return

        self._ws = ws
        log_event({
            "ts_ms": now_ms(),
            "event_type": "PHONE_CONNECTED",
            "transport": self._name,
            "url": self._url,
        })

        # The first successful connect is reported by activate() instead
        if self._activation_reported:
            await self._link_up()

        # Let activate() report reachable before frames start flowing
        self._first_attempt_done.set()

        try:
            async for raw in ws:
                await self._handle_text(raw)
        except ConnectionClosed as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "PHONE_CONNECTION_CLOSED",
                "transport": self._name,
                "error": repr(e),
            })
        finally:
            self._ws = None
            await self._link_down()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _send_text(self, text: str) -> None:
        ws = self._ws
        if ws is None:
            raise PeerUnreachable(f"{self._name}: not connected to phone")
        try:
            await ws.send(text)
        except ConnectionClosed as e:
            raise PeerUnreachable(f"{self._name}: send failed: {e!r}") from e
