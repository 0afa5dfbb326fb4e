"""
Watch process entry point.

Connects a WatchController to the phone over WebSocket and reads action
tags (incrementTeam1, resetGame, ...) from stdin, one per line. Each state
change is logged as a WATCH_STATE event.

Usage:
    python -m clients.watch_main --url ws://127.0.0.1:8000/ws
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from adapters.transport.base import now_ms
from adapters.transport.websocket_client import WebSocketClientTransport
from config import AppConfig
from observability import logger
from observability.logger import log_event
from scorekeeper.enums.action import Action
from scorekeeper.game_state import PeerState
from scorekeeper.snapshot import to_snapshot
from session.controllers import WatchController


def _log_state(state: PeerState) -> None:
    log_event({
        "ts_ms": now_ms(),
        "event_type": "WATCH_STATE",
        "connection_status": state.connection_status.value,
        "game": to_snapshot(state.game),
    })


async def run(config: AppConfig, url: str) -> None:
    transport = WebSocketClientTransport(
        url=url,
        reconnect_delay_s=config.watch_reconnect_delay_s,
    )
    watch = WatchController(transport=transport, reply_timeout_ms=config.reply_timeout_ms)
    watch.add_listener(_log_state)

    await watch.start()

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            tag = line.strip()
            if not tag:
                continue

            action = Action.parse_wire(tag)
            if action is None:
                log_event({
                    "ts_ms": now_ms(),
                    "level": "WARNING",
                    "event_type": "UNKNOWN_ACTION_INPUT",
                    "tag": tag,
                })
                continue

            await watch.dispatch(action)
    finally:
        await watch.shutdown()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    config = AppConfig.load_from_env()

    parser = argparse.ArgumentParser(description="Run the watch peer against a phone process.")
    parser.add_argument("--url", default=config.phone_url, help="phone WebSocket URL")
    args = parser.parse_args(argv)

    logger.configure(log_level=config.log_level, enable_json_logs=config.enable_json_logs)

    try:
        asyncio.run(run(config, args.url))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
