"""Ordered, observable Query collection with index-keyed functional updates."""

import logging
from collections.abc import Callable

from tonestream.models import Query

logger = logging.getLogger(__name__)

Listener = Callable[[tuple[Query, ...]], None]


class QueryStore:
    """The single shared resource between sessions.

    Every write replaces one element of an immutable tuple, so two sessions
    updating different fields of the same query never clobber each other:
    each update is applied to the latest version of the query.
    """

    def __init__(self) -> None:
        self._queries: tuple[Query, ...] = ()
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._queries)

    @property
    def queries(self) -> tuple[Query, ...]:
        return self._queries

    def get(self, index: int) -> Query | None:
        if 0 <= index < len(self._queries):
            return self._queries[index]
        return None

    def append(self, query: Query) -> int:
        self._queries = (*self._queries, query)
        self._notify()
        return len(self._queries) - 1

    def update(self, index: int, fn: Callable[[Query], Query]) -> bool:
        """Replace the query at ``index`` with ``fn(query)``. False if no such index."""
        current = self.get(index)
        if current is None:
            logger.debug("Ignoring update for unknown query index %d", index)
            return False
        updated = fn(current)
        if updated == current:
            return True
        self._queries = self._queries[:index] + (updated,) + self._queries[index + 1:]
        self._notify()
        return True

    def clear(self) -> None:
        self._queries = ()
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self._queries
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Query listener failed")
