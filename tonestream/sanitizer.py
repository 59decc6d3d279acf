"""Repair unterminated markdown in a partially streamed answer."""

import logging
import re

logger = logging.getLogger(__name__)

_FENCE = "```"
_EMPTY_HEADER = re.compile(r"^#+\s*$")


def _strip_dangling_asterisk(text: str) -> str:
    while text.endswith("*") and not text.endswith("**"):
        text = text[:-1].rstrip()
    return text


def _pad_empty_headers(text: str) -> str:
    lines = text.split("\n")
    return "\n".join(line.rstrip() + " " if _EMPTY_HEADER.match(line) else line for line in lines)


def _sanitize(text: str) -> str:
    sanitized = text.strip()

    if sanitized.count(_FENCE) % 2:
        sanitized += "\n" + _FENCE

    # Drop a lone trailing "*" before balancing so the closer added below
    # survives and the count stays even.
    sanitized = _strip_dangling_asterisk(sanitized)

    if sanitized.count("*") % 2:
        sanitized += "*"

    if sanitized.count("_") % 2:
        sanitized += "_"

    return _pad_empty_headers(sanitized)


def sanitize_markdown(text: str) -> str:
    """Return ``text`` with unterminated fences and emphasis closed.

    The result is a pure function of the full cumulative text and is
    idempotent: ``sanitize_markdown(sanitize_markdown(t)) == sanitize_markdown(t)``.
    Never raises; on failure the input is returned untouched.
    """
    if not text or not isinstance(text, str):
        return ""
    try:
        return _sanitize(text)
    except Exception:
        logger.warning("Markdown sanitization failed, using raw text", exc_info=True)
        return text
