"""Abstract base for answer-stream backends."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager

from tonestream.models import StreamRequest


class TransportError(Exception):
    """Raised when a backend cannot open or continue a stream."""

    def __init__(self, backend_name: str, message: str, status_code: int | None = None) -> None:
        self.backend_name = backend_name
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{backend_name}] {message}")


class StreamBackend(ABC):
    """Abstract base for anything that produces a raw answer byte stream."""

    @abstractmethod
    def name(self) -> str:
        """Return a short backend name used in logs and errors."""
        ...

    @abstractmethod
    def stream(self, request: StreamRequest) -> AbstractAsyncContextManager[AsyncIterator[bytes]]:
        """Open a stream for ``request``.

        Entering the context means the backend accepted the request; the
        yielded iterator produces raw byte chunks split at arbitrary
        boundaries. Leaving the context releases the connection.

        Raises:
            TransportError: On non-success status or network failure, either
                when entering the context or while iterating.
        """
        ...

    async def aclose(self) -> None:
        """Release backend resources. Default: nothing to release."""
