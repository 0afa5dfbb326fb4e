# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", lines.append)
    monkeypatch.setattr(logger, "_min_level", logger._LEVELS["INFO"])  # pylint: disable=protected-access
    monkeypatch.setattr(logger, "_json_lines", True)
    return lines


def test_log_event_emits_valid_jsonl(captured: list[str]) -> None:
    """
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    # Exactly one line emitted
    assert len(captured) == 1

    # Must be valid JSON
    decoded = json.loads(captured[0])

    # Payload must be preserved exactly
    assert decoded == payload


def test_events_below_configured_level_are_dropped(captured: list[str]) -> None:
    logger.configure(log_level="warning")

    logger.log_event({"event_type": "QUIET"})
    logger.log_event({"event_type": "DEBUGGY", "level": "DEBUG"})
    logger.log_event({"event_type": "LOUD", "level": "WARNING"})
    logger.log_event({"event_type": "LOUDER", "level": "ERROR"})

    assert [json.loads(line)["event_type"] for line in captured] == ["LOUD", "LOUDER"]


def test_unknown_level_name_falls_back_to_info(captured: list[str]) -> None:
    logger.configure(log_level="chatty")

    logger.log_event({"event_type": "A", "level": "DEBUG"})
    logger.log_event({"event_type": "B"})

    assert len(captured) == 1
    assert json.loads(captured[0])["event_type"] == "B"


def test_key_value_lines_when_json_disabled(captured: list[str]) -> None:
    logger.configure(enable_json_logs=False)

    logger.log_event({"event_type": "PLAIN", "peer": "MIRRORING"})

    assert captured == ["event_type='PLAIN' peer='MIRRORING'"]


def test_unserializable_event_falls_back(captured: list[str]) -> None:
    logger.log_event({"ts_ms": 5, "event_type": "BAD", "obj": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["ts_ms"] == 5
