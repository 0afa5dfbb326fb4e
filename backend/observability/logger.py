"""
JSONL event logger.

- Write one JSON object per line (key=value lines when JSON logs are off)
- Drop events below the configured level
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_min_level: int = _LEVELS["INFO"]
_json_lines: bool = True


def configure(*, log_level: str = "INFO", enable_json_logs: bool = True) -> None:
    """
    Apply process-wide logger settings from AppConfig.

    Unknown level names fall back to INFO.
    """
    global _min_level, _json_lines  # pylint: disable=global-statement
    _min_level = _LEVELS.get(log_level.upper(), _LEVELS["INFO"])
    _json_lines = enable_json_logs


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single event line to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including ts_ms, event_type, peer, etc.

    Events may carry a "level" key (DEBUG/INFO/WARNING/ERROR, default INFO);
    events below the configured level are dropped.

    This function:
    - Serializes to JSON (or key=value when JSON logs are disabled)
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    level = _LEVELS.get(str(event.get("level", "INFO")).upper(), _LEVELS["INFO"])
    if level < _min_level:
        return

    try:
        if _json_lines:
            line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
        else:
            line = " ".join(f"{k}={v!r}" for k, v in event.items())
    except (TypeError, ValueError) as e:
        # Last-resort fallback, logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
