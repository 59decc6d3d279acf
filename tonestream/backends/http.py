"""HTTP answer-stream backend using httpx with native async."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from config.config_loader import BackendConfig
from tonestream.backends.base import StreamBackend, TransportError
from tonestream.models import StreamRequest

logger = logging.getLogger(__name__)


class HttpStreamBackend(StreamBackend):
    """POSTs a JSON request and yields the streamed response body.

    Owns one ``httpx.AsyncClient``; construct one per coordinator and close
    it with ``aclose`` when done. Pass ``client`` to supply a preconfigured
    client (tests use ``httpx.MockTransport``).
    """

    def __init__(self, config: BackendConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        # Timeouts are enforced per session; the client only bounds connect.
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(None, connect=10.0))

    def name(self) -> str:
        return "http"

    @property
    def url(self) -> str:
        return self._config.stream_url

    @asynccontextmanager
    async def stream(self, request: StreamRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        logger.debug("POST %s tone=%s", self.url, request.tone)
        try:
            async with self._client.stream(
                "POST",
                self.url,
                json=request.to_payload(),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    raise TransportError(
                        self.name(),
                        f"HTTP error! status: {response.status_code}",
                        status_code=response.status_code,
                    )
                yield self._iter_chunks(response)
        except httpx.HTTPError as exc:
            raise TransportError(self.name(), f"Request failed: {exc}") from exc

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(self.name(), f"Stream interrupted: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
