"""Parse ``data:`` lines from the answer stream into typed events."""

import json
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class TextEvent:
    text: str
    is_complete: bool = False  # advisory only; [DONE] ends the stream


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class DoneEvent:
    pass


StreamEvent = TextEvent | ErrorEvent | DoneEvent


def _extract_text(parts: object) -> str | None:
    """Return the first text part's string, or None."""
    if not isinstance(parts, list):
        return None
    for part in parts:
        if not isinstance(part, dict):
            continue
        if part.get("type", "text") != "text":
            continue
        text = part.get("text")
        if isinstance(text, str):
            return text
    return None


def parse_line(line: str) -> StreamEvent | None:
    """Parse one complete line.

    Returns None for lines that carry nothing actionable: non-data lines,
    malformed JSON (logged and skipped) and payloads without text.
    """
    if not line.startswith(DATA_PREFIX):
        return None

    data = line[len(DATA_PREFIX):]
    if data == DONE_SENTINEL:
        return DoneEvent()

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        logger.warning("Skipping malformed stream line (%s): %.120s", exc.msg, data)
        return None

    if not isinstance(payload, dict):
        logger.debug("Ignoring non-object payload: %.120s", data)
        return None

    if payload.get("type") == "error":
        return ErrorEvent(str(payload.get("error") or "Unknown server error"))

    text = _extract_text(payload.get("parts"))
    if not text:
        logger.debug("Ignoring payload without text: %.120s", data)
        return None

    return TextEvent(text=text, is_complete=bool(payload.get("isComplete", False)))
