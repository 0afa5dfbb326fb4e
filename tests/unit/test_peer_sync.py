# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from adapters.transport.loopback import LoopbackLink
from scorekeeper.enums.action import Action
from scorekeeper.enums.team import Team
from scorekeeper.events import EventType, LocalAction
from scorekeeper.game_state import GameState
from session.connection_status import ConnectionStatus
from session.controllers import PhoneController, WatchController
from sync_helpers import paired, settle


@pytest.fixture
def logs(monkeypatch):
    captured: list[dict] = []
    monkeypatch.setattr("scorekeeper.runtime.log_event", captured.append)
    return captured


def _event_types(logs: list[dict]) -> list[str]:
    return [e.get("event_type") for e in logs]


def test_pairing_brings_both_sides_up(logs):
    async def run():
        _, phone, watch = await paired()
        return phone, watch

    phone, watch = asyncio.run(run())

    assert phone.connection_status is ConnectionStatus.UP
    assert watch.connection_status is ConnectionStatus.UP
    assert phone.is_watch_connected is True
    assert watch.game == phone.game == GameState()


def test_phone_actions_are_pushed_to_watch(logs):
    async def run():
        link, phone, watch = await paired()
        await phone.start_game()
        await phone.increment_team1_score()
        await phone.increment_team1_score()
        await phone.increment_team2_score()
        await settle(link, phone, watch)
        return phone, watch

    phone, watch = asyncio.run(run())

    assert phone.game == GameState(is_game_started=True, team1_score=2, team2_score=1)
    assert watch.game == phone.game


def test_watch_action_is_applied_on_phone_and_mirrored_back(logs):
    async def run():
        link, phone, watch = await paired()
        await watch.start_game()
        await settle(link, phone, watch)
        for _ in range(10):
            await phone.increment_team1_score()
            await phone.increment_team2_score()
        await settle(link, phone, watch)

        await watch.increment_team2_score()
        await settle(link, phone, watch)
        return phone, watch

    phone, watch = asyncio.run(run())

    assert watch.game == GameState(is_game_started=True, team1_score=10, team2_score=11)
    assert phone.game == watch.game
    assert phone.game.game_winner is None


def test_watch_does_not_change_before_reply(logs):
    async def run():
        link, phone, watch = await paired()
        before = watch.game
        await watch.start_game()
        during = watch.game
        await settle(link, phone, watch)
        return before, during, watch.game

    before, during, after = asyncio.run(run())

    assert during == before
    assert after.is_game_started is True


def test_win_is_detected_on_phone_and_acknowledged_locally(logs):
    async def run():
        link, phone, watch = await paired()
        await phone.start_game()
        for _ in range(11):
            await watch.increment_team1_score()
            await settle(link, phone, watch)
        won = phone.game
        await phone.acknowledge_win()
        await settle(link, phone, watch)
        return won, phone.game, watch.game

    won, acknowledged, mirrored = asyncio.run(run())

    assert won.game_winner is Team.TEAM1
    assert won.win_pending_ack is True
    assert acknowledged.game_winner is Team.TEAM1
    assert acknowledged.win_pending_ack is False
    assert mirrored.team1_score == 11
    assert mirrored.game_winner is None


def test_watch_action_while_unreachable_is_dropped(logs):
    async def run():
        link, phone, watch = await paired()
        await phone.start_game()
        await settle(link, phone, watch)

        link.set_connected(False)
        await settle(link, phone, watch)
        before = watch.game
        await watch.request_state()
        await watch.increment_team1_score()
        await settle(link, phone, watch)
        return before, phone, watch

    before, phone, watch = asyncio.run(run())

    assert watch.connection_status is ConnectionStatus.DOWN
    assert watch.game == before
    assert phone.game.team1_score == 0
    assert watch.pending_requests == 0
    assert _event_types(logs).count("ACTION_DROPPED_UNREACHABLE") == 2


def test_phone_push_while_unreachable_is_skipped(logs):
    async def run():
        link, phone, watch = await paired()
        link.set_connected(False)
        await settle(link, phone, watch)
        await phone.start_game()
        await settle(link, phone, watch)
        return phone, watch

    phone, watch = asyncio.run(run())

    assert phone.game.is_game_started is True
    assert watch.game.is_game_started is False
    assert "PUSH_SKIPPED_UNREACHABLE" in _event_types(logs)


def test_reconnect_brings_watch_up_to_date(logs):
    async def run():
        link, phone, watch = await paired()
        link.set_connected(False)
        await settle(link, phone, watch)

        await phone.start_game()
        await phone.increment_team2_score()
        await settle(link, phone, watch)
        stale = watch.game

        link.set_connected(True)
        await settle(link, phone, watch)
        return stale, phone, watch

    stale, phone, watch = asyncio.run(run())

    assert stale == GameState()
    assert watch.connection_status is ConnectionStatus.UP
    assert watch.game == GameState(is_game_started=True, team2_score=1)
    assert watch.game == phone.game


def test_unanswered_request_times_out(logs):
    async def run():
        link, phone, watch = await paired(reply_timeout_ms=50)
        link.phone.answer_requests = False
        await watch.increment_team1_score()
        await settle(link, phone, watch)
        return phone, watch

    phone, watch = asyncio.run(run())

    assert watch.pending_requests == 0
    assert watch.game == GameState()
    assert phone.game == GameState()


def test_timeout_emits_request_failed(monkeypatch):
    reducer_logs: list[dict] = []
    monkeypatch.setattr(
        "scorekeeper.runtime.log_event",
        lambda event: reducer_logs.append(event),
    )

    async def run():
        link, phone, watch = await paired(reply_timeout_ms=50)
        link.phone.answer_requests = False
        await watch.reset_game()
        await settle(link, phone, watch)

    asyncio.run(run())

    failed = [e for e in reducer_logs if e.get("decision") == "request_failed"]
    assert len(failed) == 1
    assert failed[0]["details"]["reason"] == "timeout"
    assert failed[0]["details"]["action"] == "resetGame"


def test_shutdown_cancels_in_flight_requests(logs):
    async def run():
        link, phone, watch = await paired(reply_timeout_ms=10_000)
        link.phone.answer_requests = False
        await watch.increment_team1_score()
        await asyncio.sleep(0)
        in_flight = watch.pending_requests
        await watch.shutdown()
        await link.drain()
        return in_flight, phone, watch

    in_flight, phone, watch = asyncio.run(run())

    assert in_flight == 1
    assert watch.pending_requests == 0
    assert watch.connection_status is ConnectionStatus.DOWN
    assert phone.connection_status is ConnectionStatus.DOWN
    assert not any(e.get("decision") == "request_failed" for e in logs)


def test_context_sync_delivers_snapshot_as_context(logs):
    async def run():
        link, phone, watch = await paired(sync_application_context=True)
        await phone.start_game()
        await phone.increment_team1_score()
        await settle(link, phone, watch)
        return watch

    watch = asyncio.run(run())

    assert watch.game == GameState(is_game_started=True, team1_score=1)
    sources = [
        e["details"].get("source")
        for e in logs
        if e.get("decision") == "snapshot_applied" and e.get("peer") == "MIRRORING"
    ]
    assert "context" in sources


def test_listeners_see_every_change_and_can_unsubscribe(logs):
    seen: list[GameState] = []

    async def run():
        link, phone, watch = await paired()
        remove = watch.add_listener(lambda state: seen.append(state.game))
        await phone.start_game()
        await settle(link, phone, watch)
        remove()
        await phone.increment_team1_score()
        await settle(link, phone, watch)

    asyncio.run(run())

    assert seen == [GameState(is_game_started=True)]


def test_listener_error_is_logged_not_raised(logs):
    def broken(_state):
        raise ValueError("bad listener")

    async def run():
        link, phone, watch = await paired()
        phone.add_listener(broken)
        await phone.start_game()
        await settle(link, phone, watch)
        return phone

    phone = asyncio.run(run())

    assert phone.game.is_game_started is True
    assert "LISTENER_ERROR" in _event_types(logs)


def test_handle_event_off_owning_loop_raises(logs):
    link = LoopbackLink()
    phone = PhoneController(transport=link.phone)
    asyncio.run(phone.start())

    with pytest.raises(RuntimeError):
        asyncio.run(phone.dispatch(Action.START_GAME))


def test_post_event_marshals_from_another_thread(logs):
    async def run():
        link, phone, watch = await paired()
        event = LocalAction(event_type=EventType.LOCAL_ACTION, ts_ms=1, action=Action.START_GAME)

        def from_thread() -> None:
            phone.post_event(event).result(timeout=1)

        await asyncio.to_thread(from_thread)
        await settle(link, phone, watch)
        return phone, watch

    phone, watch = asyncio.run(run())

    assert phone.game.is_game_started is True
    assert watch.game.is_game_started is True


def test_post_event_before_start_raises():
    watch = WatchController(transport=LoopbackLink().watch)

    with pytest.raises(RuntimeError):
        watch.post_event(
            LocalAction(event_type=EventType.LOCAL_ACTION, ts_ms=1, action=Action.START_GAME)
        )
