"""One answer stream: transport, framing, parsing, sanitizing and publishing.

A session walks ``pending -> streaming -> completed | error``. ``cancel``
moves any non-terminal session to ``cancelled``; after that nothing is
published. Observers get two callbacks:

- ``on_text(session, text)``: sanitized text, rate-limited by the
  coalescer. The final text is always flushed before the terminal status.
- ``on_status(session)``: every status transition, exactly once per
  state. ``session.error`` holds ``"Error: <message>"`` in the error state.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import aclosing

from tonestream.backends.base import StreamBackend, TransportError
from tonestream.coalescer import UpdateCoalescer
from tonestream.decoding import LineBuffer, StreamDecodeError
from tonestream.events import DoneEvent, ErrorEvent, TextEvent, parse_line
from tonestream.models import Status, StreamRequest, Variant
from tonestream.sanitizer import sanitize_markdown

logger = logging.getLogger(__name__)

TextCallback = Callable[["StreamSession", str], None]
StatusCallback = Callable[["StreamSession"], None]


def _noop_text(session: "StreamSession", text: str) -> None:
    pass


def _noop_status(session: "StreamSession") -> None:
    pass


class StreamSession:
    """Runtime owner of one network stream and its cancellation handle."""

    def __init__(
        self,
        backend: StreamBackend,
        request: StreamRequest,
        *,
        query_index: int = 0,
        variant: Variant = Variant.A,
        on_text: TextCallback = _noop_text,
        on_status: StatusCallback = _noop_status,
        debounce_sec: float = 0.1,
        timeout_sec: float | None = None,
        charset: str = "utf-8",
        text_mode: str = "cumulative",
    ) -> None:
        self.backend = backend
        self.request = request
        self.query_index = query_index
        self.variant = variant
        self.raw_text = ""
        self.text = ""
        self.error: str | None = None
        self.latency_sec: float | None = None

        self._on_text = on_text
        self._on_status = on_status
        self._timeout_sec = timeout_sec
        self._charset = charset
        self._append = text_mode == "delta"
        self._status = Status.PENDING
        self._task: asyncio.Task[Status] | None = None
        self._cancel_requested = False
        self._coalescer: UpdateCoalescer[str] = UpdateCoalescer(self._publish_text, debounce_sec)

    def __repr__(self) -> str:
        return f"<StreamSession query={self.query_index} variant={self.variant.value} status={self._status.value}>"

    @property
    def status(self) -> Status:
        return self._status

    @property
    def active(self) -> bool:
        return not self._status.is_terminal

    def start(self) -> "asyncio.Task[Status]":
        """Schedule ``run`` on the running loop. Idempotent."""
        if self._task is None:
            self._task = asyncio.create_task(
                self.run(), name=f"stream-{self.query_index}-{self.variant.value}"
            )
        return self._task

    def cancel(self) -> bool:
        """Abort the in-flight read. Returns False if already terminal."""
        if self._status.is_terminal:
            return False
        self._cancel_requested = True
        self._coalescer.cancel()
        self._set_status(Status.CANCELLED)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    async def wait(self) -> Status:
        """Wait for the session to end. Never raises."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self._status

    async def run(self) -> Status:
        start = time.monotonic()
        logger.info(
            "Stream %d/%s starting (tone=%s)", self.query_index, self.variant.value, self.request.tone
        )
        try:
            if self._timeout_sec:
                await asyncio.wait_for(self._consume(), timeout=self._timeout_sec)
            else:
                await self._consume()
        except asyncio.CancelledError:
            self._coalescer.cancel()
            self._set_status(Status.CANCELLED)
            if not self._cancel_requested:
                raise
        except TimeoutError:
            self._fail(f"Request timed out after {self._timeout_sec:g}s")
        except TransportError as exc:
            self._fail(exc.message)
        except StreamDecodeError as exc:
            self._fail(str(exc))
        except Exception as exc:
            logger.exception("Stream %d/%s crashed", self.query_index, self.variant.value)
            self._fail(f"Unexpected error: {exc}")
        else:
            self._coalescer.flush()
            self._set_status(Status.COMPLETED)

        self.latency_sec = time.monotonic() - start
        logger.info(
            "Stream %d/%s %s: %.2fs, %d chars",
            self.query_index,
            self.variant.value,
            self._status.value,
            self.latency_sec,
            len(self.raw_text),
        )
        return self._status

    async def _consume(self) -> None:
        lines = LineBuffer(self._charset)
        async with self.backend.stream(self.request) as chunks:
            self._set_status(Status.STREAMING)
            async with aclosing(chunks):
                async for chunk in chunks:
                    for line in lines.feed(chunk):
                        if self._handle_line(line):
                            return
        for line in lines.close():
            if self._handle_line(line):
                return

    def _handle_line(self, line: str) -> bool:
        """Apply one line. Returns True when the stream is finished."""
        event = parse_line(line)
        if event is None:
            return False
        if isinstance(event, DoneEvent):
            logger.debug("Stream %d/%s received [DONE]", self.query_index, self.variant.value)
            return True
        if isinstance(event, ErrorEvent):
            raise TransportError(self.backend.name(), event.message)
        if isinstance(event, TextEvent):
            self._apply_text(event)
        return False

    def _apply_text(self, event: TextEvent) -> None:
        self.raw_text = self.raw_text + event.text if self._append else event.text
        self.text = sanitize_markdown(self.raw_text)
        if event.is_complete:
            logger.debug("Stream %d/%s flagged isComplete", self.query_index, self.variant.value)
        self._coalescer.submit(self.text)

    def _publish_text(self, text: str) -> None:
        if self._status in (Status.ERROR, Status.CANCELLED):
            return
        self._on_text(self, text)

    def _set_status(self, status: Status) -> None:
        if self._status is status or self._status.is_terminal:
            return
        self._status = status
        self._on_status(self)

    def _fail(self, message: str) -> None:
        if self._status.is_terminal:
            return
        # Keep whatever partial text was pending; the error only adds status.
        self._coalescer.flush()
        self.error = f"Error: {message}"
        logger.warning("Stream %d/%s failed: %s", self.query_index, self.variant.value, message)
        self._set_status(Status.ERROR)
