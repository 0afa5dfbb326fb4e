"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for the behavioral constants of the scorekeeper.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Scoring rules
# =============================================================================

WIN_TARGET_SCORE: Final[int] = 11
WIN_MARGIN: Final[int] = 2

# =============================================================================
# Wire keys (snapshot + action payloads)
# =============================================================================

KEY_IS_GAME_STARTED: Final[str] = "isGameStarted"
KEY_TEAM1_SCORE: Final[str] = "team1Score"
KEY_TEAM2_SCORE: Final[str] = "team2Score"
KEY_ACTION: Final[str] = "action"

SNAPSHOT_KEYS: Final[Tuple[str, ...]] = (
    KEY_IS_GAME_STARTED,
    KEY_TEAM1_SCORE,
    KEY_TEAM2_SCORE,
)

# =============================================================================
# Envelope framing (WebSocket transport)
# =============================================================================

ENVELOPE_KIND_MESSAGE: Final[str] = "message"
ENVELOPE_KIND_REQUEST: Final[str] = "request"
ENVELOPE_KIND_REPLY: Final[str] = "reply"
ENVELOPE_KIND_CONTEXT: Final[str] = "context"

ENVELOPE_KINDS: Final[Tuple[str, ...]] = (
    ENVELOPE_KIND_MESSAGE,
    ENVELOPE_KIND_REQUEST,
    ENVELOPE_KIND_REPLY,
    ENVELOPE_KIND_CONTEXT,
)

ENVELOPE_MAX_BYTES: Final[int] = 64 * 1024

# =============================================================================
# Request / reply timing
# =============================================================================

REPLY_TIMEOUT_MS: Final[int] = 5_000

# =============================================================================
# WebSocket close codes
# =============================================================================

# Sent to a second watch while one is already paired
WS_CLOSE_TRY_AGAIN_LATER: Final[int] = 1013
WS_CLOSE_NORMAL: Final[int] = 1000

# =============================================================================
# Watch client
# =============================================================================

WATCH_RECONNECT_DELAY_S: Final[float] = 2.0
