"""Protocol helpers for Parley real-time frames."""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Mapping
from typing import Any

ACKNOWLEDGED_METHOD = "acknowledged"


def now_ms() -> int:
    """Return wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_correlation_id() -> str:
    """Return a fresh correlation id for an outbound frame."""
    return str(uuid.uuid4())


def build_outbound_frame(
    payload: Mapping[str, Any],
    *,
    temp_id: str,
    timestamp_ms: int,
) -> dict[str, Any]:
    """Stamp an outbound business payload for delivery tracking.

    Args:
        payload: Caller-built frame, at least carrying a ``method`` field.
        temp_id: Correlation id the server echoes back when acknowledging.
        timestamp_ms: Client-side creation time in epoch milliseconds.

    Returns:
        A new dict; the caller's payload is left untouched.
    """
    frame = dict(payload)
    frame["time"] = timestamp_ms
    frame["tempId"] = temp_id
    return frame


def encode_frame(frame: Mapping[str, Any]) -> str:
    """Serialize a frame to compact JSON text."""
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def is_acknowledgment(frame: Mapping[str, Any]) -> bool:
    """Return True when the server confirms receipt of an outbound frame."""
    return frame.get("method") == ACKNOWLEDGED_METHOD


def acknowledged_id(frame: Mapping[str, Any]) -> str | None:
    """Extract the correlation id from an acknowledgment frame."""
    if not is_acknowledgment(frame):
        return None
    temp_id = frame.get("tempId")
    if temp_id is None:
        return None
    return str(temp_id)
