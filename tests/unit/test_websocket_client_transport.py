# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import socket
from typing import Any

import pytest
import uvicorn

import adapters.transport.websocket_client as client_mod
import scorekeeper.runtime as runtime_mod
from adapters.transport.base import PeerUnreachable, TransportNotAttached
from adapters.transport.websocket_client import WebSocketClientTransport
from config import AppConfig
from scorekeeper.events import ActivationCompleted, Event
from scorekeeper.game_state import GameState
from server.app import create_app
from session.connection_status import ConnectionStatus
from session.controllers import WatchController


# Nothing listens on port 1; connects are refused immediately
_DEAD_URL = "ws://127.0.0.1:1/ws"


def _config() -> AppConfig:
    return AppConfig(
        env="test",
        log_level="ERROR",
        enable_json_logs=True,
        phone_host="127.0.0.1",
        phone_port=0,
        phone_url="ws://127.0.0.1:0/ws",
        watch_reconnect_delay_s=0.2,
        reply_timeout_ms=2_000,
        sync_application_context=False,
    )


def _game(team1: int, team2: int) -> GameState:
    return GameState(is_game_started=True, team1_score=team1, team2_score=team2)


@pytest.fixture
def logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    captured: list[dict[str, Any]] = []
    monkeypatch.setattr(client_mod, "log_event", captured.append)
    monkeypatch.setattr(runtime_mod, "log_event", captured.append)
    return captured


def test_activate_requires_attach():
    async def run():
        transport = WebSocketClientTransport(url=_DEAD_URL)
        with pytest.raises(TransportNotAttached):
            await transport.activate()

    asyncio.run(run())


def test_unreachable_phone_reports_failed_activation(logs):
    async def run():
        events: list[Event] = []

        async def sink(event: Event) -> None:
            events.append(event)

        transport = WebSocketClientTransport(url=_DEAD_URL, reconnect_delay_s=60.0, open_timeout_s=1.0)
        transport.attach(sink)
        await transport.activate()
        reachable = transport.is_reachable

        with pytest.raises(PeerUnreachable):
            await transport.send_request({"action": "requestState"})

        await transport.close()
        return events, reachable

    events, reachable = asyncio.run(run())

    assert reachable is False
    assert isinstance(events[0], ActivationCompleted)
    assert events[0].reachable is False
    assert "PHONE_CONNECT_FAILED" in [e["event_type"] for e in logs]


def test_watch_stays_down_and_drops_actions_without_phone(logs):
    async def run():
        transport = WebSocketClientTransport(url=_DEAD_URL, reconnect_delay_s=60.0, open_timeout_s=1.0)
        watch = WatchController(transport=transport, reply_timeout_ms=200)
        await watch.start()
        await watch.increment_team1_score()
        status, game, pending = watch.connection_status, watch.game, watch.pending_requests
        await watch.shutdown()
        return status, game, pending

    status, game, pending = asyncio.run(run())

    assert status is ConnectionStatus.DOWN
    assert game.team1_score == 0
    assert pending == 0
    assert "ACTION_DROPPED_UNREACHABLE" in [e.get("event_type") for e in logs]


# ------------------------------------------------------------------
# Connected to a live phone app
# ------------------------------------------------------------------

async def _until(predicate, timeout_s: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout_s
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def test_watch_syncs_with_live_phone_and_pulls_state_after_reconnect(logs):
    async def run():
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

        app = create_app(_config())
        server = uvicorn.Server(uvicorn.Config(app, log_level="error", lifespan="on"))
        server_task = asyncio.create_task(server.serve(sockets=[sock]))
        await _until(lambda: server.started)

        phone = app.state.phone
        watch = WatchController(
            transport=WebSocketClientTransport(
                url=f"ws://127.0.0.1:{port}/ws",
                reconnect_delay_s=0.2,
            ),
            reply_timeout_ms=2_000,
        )
        try:
            await phone.start_game()
            await watch.start()
            await _until(lambda: watch.is_connected and phone.is_connected)
            await _until(lambda: watch.game.is_game_started)

            await watch.increment_team1_score()
            await _until(lambda: watch.pending_requests == 0)
            await _until(lambda: phone.game == watch.game == _game(1, 0))
            first = phone.game, watch.game

            # Phone drops the link; the watch must pull the missed point
            await app.state.transport._ws.close(code=1001)  # pylint: disable=protected-access
            await _until(lambda: not phone.is_connected and not watch.is_connected)
            await phone.increment_team2_score()
            missed = watch.game

            await _until(lambda: watch.is_connected and phone.is_connected)
            await _until(lambda: watch.game == _game(1, 1))
            second = phone.game, watch.game
        finally:
            await watch.shutdown()
            server.should_exit = True
            await server_task

        return first, missed, second

    first, missed, second = asyncio.run(run())

    assert first == (_game(1, 0), _game(1, 0))
    assert missed == _game(1, 0)
    assert second == (_game(1, 1), _game(1, 1))
    assert [e["event_type"] for e in logs].count("PHONE_CONNECTED") >= 2
