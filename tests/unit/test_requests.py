# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from adapters.transport.base import PeerUnreachable, TransportError
from scorekeeper.enums.action import Action
from scorekeeper.events import Event, ReplyReceived, RequestFailed
from scorekeeper.requests import PendingRequests


def _pending(send_request, timeout_ms: int = 1_000) -> tuple[PendingRequests, list[Event]]:
    emitted: list[Event] = []

    async def sink(event: Event) -> None:
        emitted.append(event)

    return PendingRequests(send_request=send_request, emit_event=sink, timeout_ms=timeout_ms), emitted


def test_reply_becomes_reply_received():
    async def send(payload):
        assert payload == {"action": "incrementTeam1"}
        return {"isGameStarted": True, "team1Score": 1, "team2Score": 0}

    async def run():
        pending, emitted = _pending(send)
        request_id = pending.submit(Action.INCREMENT_TEAM1)
        await pending.drain()
        return request_id, pending.in_flight, emitted

    request_id, in_flight, emitted = asyncio.run(run())

    assert in_flight == 0
    assert len(emitted) == 1
    assert isinstance(emitted[0], ReplyReceived)
    assert emitted[0].request_id == request_id
    assert emitted[0].action is Action.INCREMENT_TEAM1
    assert emitted[0].payload["team1Score"] == 1


@pytest.mark.parametrize(
    "error, reason",
    [
        (PeerUnreachable("gone"), "unreachable"),
        (TransportError("bad frame"), "transport_error"),
    ],
)
def test_send_errors_become_request_failed(error, reason):
    async def send(_payload):
        raise error

    async def run():
        pending, emitted = _pending(send)
        pending.submit(Action.DECREMENT_TEAM2)
        await pending.drain()
        return emitted

    emitted = asyncio.run(run())

    assert len(emitted) == 1
    assert isinstance(emitted[0], RequestFailed)
    assert emitted[0].reason == reason
    assert emitted[0].action is Action.DECREMENT_TEAM2


def test_missing_reply_times_out():
    async def send(_payload):
        await asyncio.sleep(10)

    async def run():
        pending, emitted = _pending(send, timeout_ms=20)
        pending.submit(Action.START_GAME)
        await pending.drain()
        return emitted

    emitted = asyncio.run(run())

    assert [type(e) for e in emitted] == [RequestFailed]
    assert emitted[0].reason == "timeout"


def test_cancel_all_waits_for_tasks_and_emits_nothing():
    async def run():
        in_send = asyncio.Event()

        async def send(_payload):
            in_send.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                # A transport torn down mid-send surfaces as unreachable
                raise PeerUnreachable("link dropped") from None

        pending, emitted = _pending(send, timeout_ms=10_000)
        pending.submit(Action.INCREMENT_TEAM1)
        pending.submit(Action.INCREMENT_TEAM2)
        await in_send.wait()
        before = pending.in_flight

        await pending.cancel_all()
        after = pending.in_flight

        # Give any stray callbacks a chance to run
        await asyncio.sleep(0.01)
        return before, after, emitted

    before, after, emitted = asyncio.run(run())

    assert before == 2
    assert after == 0
    assert emitted == []


def test_cancel_all_leaves_tasks_cancelled():
    async def send(_payload):
        await asyncio.sleep(10)

    async def run():
        pending, emitted = _pending(send, timeout_ms=10_000)
        pending.submit(Action.RESET_GAME)
        await asyncio.sleep(0)
        tasks = list(pending._tasks.values())  # pylint: disable=protected-access

        await pending.cancel_all()
        return tasks, emitted

    tasks, emitted = asyncio.run(run())

    assert len(tasks) == 1
    assert tasks[0].cancelled()
    assert emitted == []


def test_cancel_all_with_nothing_in_flight():
    async def send(_payload):
        return {}

    async def run():
        pending, emitted = _pending(send)
        await pending.cancel_all()
        return pending.in_flight, emitted

    in_flight, emitted = asyncio.run(run())

    assert in_flight == 0
    assert emitted == []
