"""
Phone and watch controllers.

Both are the same Peer runtime bound to a role; they only add the named
operations the presentation layer calls. What an operation does (apply here
and push, or forward to the phone and wait for its reply) is decided by the
reducer from the role.
"""

from __future__ import annotations

from adapters.transport.base import TransportChannel
from constants import REPLY_TIMEOUT_MS
from scorekeeper.enums.action import Action
from scorekeeper.enums.role import Role
from scorekeeper.runtime import Peer


class _ScoreboardOperations(Peer):
    """Operations shared by both controllers."""

    async def start_game(self) -> None:
        await self.dispatch(Action.START_GAME)

    async def reset_game(self) -> None:
        await self.dispatch(Action.RESET_GAME)

    async def increment_team1_score(self) -> None:
        await self.dispatch(Action.INCREMENT_TEAM1)

    async def decrement_team1_score(self) -> None:
        await self.dispatch(Action.DECREMENT_TEAM1)

    async def increment_team2_score(self) -> None:
        await self.dispatch(Action.INCREMENT_TEAM2)

    async def decrement_team2_score(self) -> None:
        await self.dispatch(Action.DECREMENT_TEAM2)

    async def request_state(self) -> None:
        await self.dispatch(Action.REQUEST_STATE)


class PhoneController(_ScoreboardOperations):
    """
    Authoritative side.

    Applies local and remote actions identically, detects wins, pushes a
    snapshot to the watch after every mutation and answers watch requests
    with the post-action snapshot.
    """

    def __init__(
        self,
        *,
        transport: TransportChannel,
        reply_timeout_ms: int = REPLY_TIMEOUT_MS,
        sync_application_context: bool = False,
    ) -> None:
        super().__init__(
            role=Role.AUTHORITATIVE,
            transport=transport,
            reply_timeout_ms=reply_timeout_ms,
            sync_application_context=sync_application_context,
        )

    @property
    def is_watch_connected(self) -> bool:
        return self.is_connected

    async def acknowledge_win(self) -> None:
        """Dismiss the win alert; the winner stays recorded."""
        await self.dispatch(Action.ACKNOWLEDGE_WIN)


class WatchController(_ScoreboardOperations):
    """
    Mirroring side.

    Operations never touch the local replica; each becomes a request to the
    phone, and only the phone's reply (or a later push) changes what the
    watch shows. Unreachable phone means the action is dropped.
    """

    def __init__(
        self,
        *,
        transport: TransportChannel,
        reply_timeout_ms: int = REPLY_TIMEOUT_MS,
    ) -> None:
        super().__init__(
            role=Role.MIRRORING,
            transport=transport,
            reply_timeout_ms=reply_timeout_ms,
        )
