"""
Request/reply tracking for forwarded actions.

Responsibilities:
- Run each request/reply exchange as its own task (the UI never waits)
- Bound every exchange with a reply timeout
- Convert the outcome into ReplyReceived or RequestFailed events
- Cancel everything on peer shutdown

Non-responsibilities:
- NO retry logic
- NO queuing while unreachable
- NO reducer decisions

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
import time
from asyncio import Task
from typing import Any, Awaitable, Callable
from uuid import uuid4

from adapters.transport.base import PeerUnreachable, TransportError
from constants import KEY_ACTION, REPLY_TIMEOUT_MS
from scorekeeper.enums.action import Action
from scorekeeper.events import (
    Event,
    EventType,
    ReplyReceived,
    RequestFailed,
)


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

EventSink = Callable[[Event], Awaitable[None]]
SendRequestFn = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


# ---------------------------------------------------------------------
# Pending requests
# ---------------------------------------------------------------------

class PendingRequests:
    """
    In-flight request/reply exchanges for one peer.

    Lifecycle:
    1. Reducer emits SendActionRequest(action)
    2. Runtime calls submit(action)
    3. Task sends {"action": tag} and waits up to timeout_ms
    4a. Reply arrives -> emit ReplyReceived
    4b. Timeout / unreachable / transport error -> emit RequestFailed
    4c. cancel_all() on shutdown -> task is cancelled, nothing is emitted

    A reply that never arrives cannot hold a continuation forever.
    """

    def __init__(
        self,
        *,
        send_request: SendRequestFn,
        emit_event: EventSink,
        timeout_ms: int = REPLY_TIMEOUT_MS,
    ) -> None:
        self._send_request = send_request
        self._emit_event = emit_event
        self._timeout_s = timeout_ms / 1000.0

        self._tasks: dict[str, Task[None]] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, action: Action) -> str:
        """Start one exchange. Returns the local request id."""
        request_id = f"act_{uuid4().hex[:12]}"

        task = asyncio.create_task(self._exchange(request_id=request_id, action=action))
        self._tasks[request_id] = task

        def _cleanup(_: Task[None]) -> None:
            self._tasks.pop(request_id, None)

        task.add_done_callback(_cleanup)
        return request_id

    async def cancel_all(self) -> None:
        """
        Cancel every outstanding exchange and wait for each task to end.
        Used on peer teardown; nothing is emitted afterwards.
        """
        self._closed = True
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def drain(self) -> None:
        """Wait for every in-flight exchange to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _exchange(self, *, request_id: str, action: Action) -> None:
        try:
            reply = await asyncio.wait_for(
                self._send_request({KEY_ACTION: action.value}),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            await self._fail(request_id, action, "timeout")
            return
        except PeerUnreachable:
            await self._fail(request_id, action, "unreachable")
            return
        except TransportError:
            await self._fail(request_id, action, "transport_error")
            return

        await self._emit(
            ReplyReceived(
                event_type=EventType.REPLY_RECEIVED,
                ts_ms=_now_ms(),
                request_id=request_id,
                action=action,
                payload=reply if isinstance(reply, dict) else {},
            )
        )

    async def _fail(self, request_id: str, action: Action, reason: str) -> None:
        await self._emit(
            RequestFailed(
                event_type=EventType.REQUEST_FAILED,
                ts_ms=_now_ms(),
                request_id=request_id,
                action=action,
                reason=reason,
            )
        )

    async def _emit(self, event: Event) -> None:
        # The peer has shut down; outcomes of cancelled exchanges are dropped
        if self._closed:
            return
        await self._emit_event(event)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000
