"""Integration tests: real backend, no mocks. Requires TONESTREAM_API_URL in env or .env."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("TONESTREAM_API_URL", "").strip():
    pytestmark = pytest.mark.skip(reason="TONESTREAM_API_URL not set")


async def test_single_question_streams_to_completion():
    from config.config_loader import load_config
    from tonestream.backends.http import HttpStreamBackend
    from tonestream.coordinator import ConversationCoordinator, StreamingSettings
    from tonestream.models import Status

    config = load_config()
    backend = HttpStreamBackend(config.backend)
    coordinator = ConversationCoordinator(backend, StreamingSettings.from_config(config))
    try:
        index = coordinator.submit("Say hello in one short sentence.", dual=False)
        status = await coordinator.wait(index)
    finally:
        await coordinator.aclose()
        await backend.aclose()

    query = coordinator.queries[index]
    assert status is Status.COMPLETED, query.error
    assert query.response


async def test_dual_question_fills_both_answers():
    from config.config_loader import load_config
    from tonestream.backends.http import HttpStreamBackend
    from tonestream.coordinator import ConversationCoordinator, StreamingSettings
    from tonestream.models import Status

    config = load_config()
    backend = HttpStreamBackend(config.backend)
    coordinator = ConversationCoordinator(backend, StreamingSettings.from_config(config))
    try:
        index = coordinator.submit("Describe the weather today.", dual=True)
        status = await coordinator.wait(index)
    finally:
        await coordinator.aclose()
        await backend.aclose()

    query = coordinator.queries[index]
    assert status is Status.COMPLETED, query.error
    assert query.dual_ready
    assert query.response and query.response_b
