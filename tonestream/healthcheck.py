"""Backend health checks: open a probe stream per tone before chatting."""

import asyncio
import logging

from tonestream.backends.base import StreamBackend
from tonestream.models import StreamRequest

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(backend: StreamBackend, tone: str) -> tuple[str, bool, str]:
    """Open one stream and release it as soon as the backend accepts it.

    Returns (tone, ok, error_message).
    """
    request = StreamRequest(message=_PING_PROMPT, tone=tone, num_results=1)

    async def probe() -> None:
        async with backend.stream(request):
            pass

    try:
        await asyncio.wait_for(probe(), timeout=_TIMEOUT_SEC)
        return tone, True, ""
    except TimeoutError:
        return tone, False, f"No response within {_TIMEOUT_SEC:g}s"
    except Exception as exc:
        return tone, False, str(exc)


async def run_health_checks(
    backend: StreamBackend,
    tones: list[str],
) -> dict[str, tuple[bool, str]]:
    """Probe every tone in parallel.

    Returns:
        Dict mapping tone -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(backend, t) for t in dict.fromkeys(tones)))
    for tone, ok, err in results:
        if not ok:
            logger.debug("Health check failed for tone %s: %s", tone, err)
    return {tone: (ok, err) for tone, ok, err in results}
