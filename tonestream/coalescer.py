"""Last-write-wins publish throttle bound to the event loop."""

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class UpdateCoalescer(Generic[T]):
    """Publish at most one value per delay window.

    ``submit`` (re)schedules a publish ``delay_sec`` from now; a value
    submitted while another is pending replaces it. Replaced values are
    dropped, never merged. The owner must ``flush`` or ``cancel`` before it
    goes terminal so no publish fires after teardown.
    """

    def __init__(self, publish: Callable[[T], None], delay_sec: float = 0.1) -> None:
        self._publish = publish
        self._delay_sec = delay_sec
        self._handle: asyncio.TimerHandle | None = None
        self._value: object = _UNSET

    @property
    def pending(self) -> bool:
        return self._value is not _UNSET

    def submit(self, value: T) -> None:
        if self._delay_sec <= 0:
            self._publish(value)
            return
        if self._handle is not None:
            self._handle.cancel()
        self._value = value
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay_sec, self._fire)

    def flush(self) -> bool:
        """Publish the pending value now. Returns False if nothing was pending."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._value is _UNSET:
            return False
        value, self._value = self._value, _UNSET
        self._publish(value)  # type: ignore[arg-type]
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._value is not _UNSET:
            logger.debug("Dropping pending publish")
        self._value = _UNSET

    def _fire(self) -> None:
        self._handle = None
        if self._value is _UNSET:
            return
        value, self._value = self._value, _UNSET
        self._publish(value)  # type: ignore[arg-type]
