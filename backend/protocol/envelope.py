# backend/protocol/envelope.py
"""
JSON envelope framing for the pairing link.

Every text frame on the phone <-> watch WebSocket is one envelope:

    {"kind": "message" | "request" | "reply" | "context",
     "id":   str | null,       # required for request / reply
     "payload": {...}}         # action or snapshot mapping

Usage example:

    env = decode_envelope(raw_text)

    if env.kind == ENVELOPE_KIND_REQUEST:
        ...

    text = encode_envelope(
        Envelope(kind=ENVELOPE_KIND_REPLY, id=env.id, payload=snapshot)
    )
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from constants import (
    ENVELOPE_KIND_REPLY,
    ENVELOPE_KIND_REQUEST,
    ENVELOPE_KINDS,
    ENVELOPE_MAX_BYTES,
)


# -------------------------
# Exceptions
# -------------------------

class ProtocolError(Exception):
    """Base class for wire protocol errors."""


class EnvelopeError(ProtocolError):
    """
    Raised when a text frame is not a valid envelope.

    Covers oversized frames, invalid JSON, unknown kinds, non-mapping
    payloads and missing correlation ids. The frame is unsafe to process
    and must be dropped.
    """


# -------------------------
# Envelope
# -------------------------

@dataclass(frozen=True)
class Envelope:
    """One framed unit on the pairing link."""
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


def _validate(kind: Any, payload: Any, env_id: Any) -> None:
    if kind not in ENVELOPE_KINDS:
        raise EnvelopeError(f"Unknown envelope kind: {kind!r}")

    if not isinstance(payload, dict):
        raise EnvelopeError(f"Envelope payload must be an object, got {type(payload).__name__}")

    if kind in (ENVELOPE_KIND_REQUEST, ENVELOPE_KIND_REPLY):
        if not isinstance(env_id, str) or not env_id:
            raise EnvelopeError(f"Envelope kind {kind!r} requires a non-empty id")
    elif env_id is not None and not isinstance(env_id, str):
        raise EnvelopeError(f"Envelope id must be a string, got {type(env_id).__name__}")


def encode_envelope(envelope: Envelope) -> str:
    """
    Encode an envelope to a JSON text frame.
    """
    _validate(envelope.kind, envelope.payload, envelope.id)

    try:
        text = json.dumps(
            {"kind": envelope.kind, "id": envelope.id, "payload": envelope.payload},
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        raise EnvelopeError(f"Envelope payload is not JSON-serializable: {e}") from e

    if len(text.encode("utf-8")) > ENVELOPE_MAX_BYTES:
        raise EnvelopeError(f"Envelope exceeds {ENVELOPE_MAX_BYTES} bytes")

    return text


def decode_envelope(raw: str | bytes) -> Envelope:
    """
    Decode a text (or UTF-8 bytes) frame into an envelope.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EnvelopeError(f"Envelope is not valid UTF-8: {e}") from e

    if len(raw.encode("utf-8")) > ENVELOPE_MAX_BYTES:
        raise EnvelopeError(f"Envelope exceeds {ENVELOPE_MAX_BYTES} bytes")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise EnvelopeError(f"Envelope is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise EnvelopeError("Envelope must be a JSON object")

    kind = data.get("kind")
    payload = data.get("payload", {})
    env_id = data.get("id")

    _validate(kind, payload, env_id)

    return Envelope(kind=kind, payload=payload, id=env_id)
