"""Shared pytest fixtures."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest

from config.config_loader import AppConfig, BackendConfig, StreamingConfig, TonesConfig
from tonestream.backends.base import StreamBackend
from tonestream.coordinator import StreamingSettings
from tonestream.models import StreamRequest


def data_line(text: str, **extra) -> bytes:
    """One SSE data line carrying ``text`` as the cumulative answer."""
    payload = {"parts": [{"type": "text", "text": text}], **extra}
    return f"data: {json.dumps(payload)}\n".encode("utf-8")


DONE = b"data: [DONE]\n"


class ScriptedBackend(StreamBackend):
    """Test double StreamBackend.

    ``scripts`` maps a tone (or None for any tone) to a list of items served
    in order: bytes are yielded as chunks, an asyncio.Event is awaited
    before continuing, an exception is raised mid-stream.
    ``open_errors`` maps a tone to an exception raised before streaming.
    """

    def __init__(
        self,
        scripts: dict[str | None, list] | None = None,
        open_errors: dict[str | None, Exception] | None = None,
    ) -> None:
        self._scripts = scripts or {}
        self._open_errors = open_errors or {}
        self.requests: list[StreamRequest] = []
        self.chunks_served = 0
        self.closed = False

    def name(self) -> str:
        return "scripted"

    def _lookup(self, table: dict, tone: str | None):
        if tone in table:
            return table[tone]
        return table.get(None)

    @asynccontextmanager
    async def stream(self, request: StreamRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        self.requests.append(request)
        await asyncio.sleep(0)
        error = self._lookup(self._open_errors, request.tone)
        if error is not None:
            raise error
        yield self._serve(self._lookup(self._scripts, request.tone) or [])

    async def _serve(self, script: list) -> AsyncIterator[bytes]:
        for item in script:
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, BaseException):
                raise item
            else:
                self.chunks_served += 1
                yield item
                await asyncio.sleep(0)

    async def aclose(self) -> None:
        self.closed = True


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Poll ``predicate`` on the event loop until it is true."""
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.fixture
def sample_backend_config() -> BackendConfig:
    return BackendConfig(
        base_url="http://testserver",
        stream_path="/gemini-tone",
        num_results=5,
        timeout_sec=30,
        charset="utf-8",
    )


@pytest.fixture
def sample_app_config(sample_backend_config: BackendConfig) -> AppConfig:
    return AppConfig(
        backend=sample_backend_config,
        streaming=StreamingConfig(debounce_ms=100, text_mode="cumulative", dual_default=True),
        tones=TonesConfig(a="professional", b="casual"),
    )


@pytest.fixture
def fast_settings() -> StreamingSettings:
    """No debounce, so every payload publishes immediately."""
    return StreamingSettings(debounce_sec=0, timeout_sec=5)


@pytest.fixture
def hello_script() -> list[bytes]:
    return [data_line("Hel"), data_line("Hello world"), DONE]
