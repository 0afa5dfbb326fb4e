"""
Route registration for the phone process.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire the watch WebSocket to the pairing transport
- Expose the phone replica to a local presentation layer
- Pull dependencies from app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket

from adapters.transport.base import now_ms
from adapters.transport.websocket_server import WebSocketServerTransport
from observability.logger import log_event
from scorekeeper.enums.action import Action
from scorekeeper.snapshot import to_snapshot
from session.controllers import PhoneController


def state_body(phone: PhoneController) -> dict[str, Any]:
    """Snapshot plus the phone-only fields a scoreboard UI renders."""
    game = phone.game
    body = to_snapshot(game)
    body["gameWinner"] = game.game_winner.value if game.game_winner else None
    body["winPendingAck"] = game.win_pending_ack
    body["watchConnected"] = phone.is_watch_connected
    return body


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/state")
    async def get_state() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        phone: PhoneController = app.state.phone
        return state_body(phone)

    @app.post("/actions/{tag}")
    async def post_action(tag: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        phone: PhoneController = app.state.phone
        try:
            action = Action(tag)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=f"Unknown action: {tag}") from e

        await phone.dispatch(action)
        return state_body(phone)

    @app.websocket("/ws")
    async def watch_link(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        transport: WebSocketServerTransport = app.state.transport
        await ws.accept()

        try:
            await transport.serve(ws)

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "level": "ERROR",
                "event_type": "WS_FATAL_ERROR",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
