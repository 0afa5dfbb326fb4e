"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No sync logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import REPLY_TIMEOUT_MS, WATCH_RECONNECT_DELAY_S


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the phone app factory and the watch client.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Phone (authoritative peer) server
    # ------------------------------------------------------------------

    phone_host: str
    phone_port: int

    # ------------------------------------------------------------------
    # Watch (mirroring peer) client
    # ------------------------------------------------------------------

    phone_url: str
    watch_reconnect_delay_s: float

    # ------------------------------------------------------------------
    # Sync behavior
    # ------------------------------------------------------------------

    reply_timeout_ms: int
    sync_application_context: bool

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            phone_host=os.environ.get("PHONE_HOST", "0.0.0.0"),
            phone_port=int(os.environ.get("PHONE_PORT", "8000")),

            phone_url=os.environ.get("PHONE_URL", "ws://127.0.0.1:8000/ws"),
            watch_reconnect_delay_s=float(
                os.environ.get("WATCH_RECONNECT_DELAY_S", str(WATCH_RECONNECT_DELAY_S))
            ),

            reply_timeout_ms=int(os.environ.get("REPLY_TIMEOUT_MS", str(REPLY_TIMEOUT_MS))),
            sync_application_context=os.environ.get("SYNC_APPLICATION_CONTEXT", "0") == "1",
        )
