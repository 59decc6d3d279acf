"""Conversation orchestration: one or two parallel answer streams per query."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from config.config_loader import AppConfig
from tonestream.backends.base import StreamBackend
from tonestream.models import Query, Status, StreamRequest, Variant
from tonestream.session import StreamSession
from tonestream.store import Listener, QueryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Single:
    """One stream per query, written to ``response``."""

    variants: tuple[Variant, ...] = (Variant.A,)


@dataclass(frozen=True)
class Dual:
    """Two concurrent streams per query, one per tone."""

    variants: tuple[Variant, ...] = (Variant.A, Variant.B)


VariantStrategy = Single | Dual


@dataclass(frozen=True)
class StreamingSettings:
    tone_a: str = "professional"
    tone_b: str = "casual"
    num_results: int = 5
    debounce_sec: float = 0.1
    timeout_sec: float | None = None
    charset: str = "utf-8"
    text_mode: str = "cumulative"

    @classmethod
    def from_config(cls, config: AppConfig) -> "StreamingSettings":
        return cls(
            tone_a=config.tones.a,
            tone_b=config.tones.b,
            num_results=config.backend.num_results,
            debounce_sec=config.streaming.debounce_ms / 1000,
            timeout_sec=config.backend.timeout_sec or None,
            charset=config.backend.charset,
            text_mode=config.streaming.text_mode,
        )

    def tone_for(self, variant: Variant) -> str:
        return self.tone_a if variant is Variant.A else self.tone_b


def combine_status(statuses: Iterable[Status]) -> Status:
    """Merge per-variant session statuses into the query status.

    error wins; completed only when every session completed; streaming while
    any session is still running and at least one has started.
    """
    statuses = list(statuses)
    if not statuses:
        return Status.PENDING
    if Status.ERROR in statuses:
        return Status.ERROR
    if all(s is Status.COMPLETED for s in statuses):
        return Status.COMPLETED
    if any(not s.is_terminal for s in statuses):
        if all(s is Status.PENDING for s in statuses):
            return Status.PENDING
        return Status.STREAMING
    return Status.CANCELLED


@dataclass
class _Turn:
    strategy: VariantStrategy
    sessions: dict[Variant, StreamSession] = field(default_factory=dict)
    # Variants whose status feeds the query status; narrowed by selection.
    counted: tuple[Variant, ...] = ()


class ConversationCoordinator:
    """Owns the query list and the sessions writing into it.

    The backend is supplied by the caller and is not closed here. ``submit``,
    ``select``, ``cancel`` and ``reset`` must be called from the running
    event loop.
    """

    def __init__(
        self,
        backend: StreamBackend,
        settings: StreamingSettings | None = None,
        store: QueryStore | None = None,
    ) -> None:
        self._backend = backend
        self._settings = settings or StreamingSettings()
        self._store = store or QueryStore()
        self._turns: dict[int, _Turn] = {}

    @property
    def queries(self) -> tuple[Query, ...]:
        return self._store.queries

    @property
    def busy(self) -> bool:
        return any(s.active for t in self._turns.values() for s in t.sessions.values())

    def subscribe(self, listener: Listener):
        return self._store.subscribe(listener)

    def submit(self, prompt: str, dual: bool = True) -> int | None:
        """Append a query and start its stream(s). Returns the query index.

        Blank prompts are ignored and return None.
        """
        text = prompt.strip()
        if not text:
            logger.debug("Ignoring empty prompt")
            return None

        strategy: VariantStrategy = Dual() if dual else Single()
        index = self._store.append(Query(prompt=text, is_dual=isinstance(strategy, Dual)))
        self._turns[index] = _Turn(strategy=strategy, counted=strategy.variants)

        logger.info("Query %d submitted (%s)", index, "dual" if dual else "single")
        for variant in strategy.variants:
            self._start_session(index, variant)
        return index

    def select(self, index: int, variant: Variant | str) -> None:
        """Keep one variant's answer.

        Unknown ``index``, or a variant the query never ran, is a no-op.
        """
        query = self._store.get(index)
        if query is None:
            logger.debug("Selection ignored, no query at index %d", index)
            return

        chosen = Variant(variant)
        turn = self._turns.get(index)
        if turn is not None and chosen not in turn.strategy.variants:
            logger.debug("Selection ignored, query %d has no variant %s", index, chosen.value)
            return

        tone = self._settings.tone_for(chosen)
        self._store.update(
            index,
            lambda q: replace(
                q,
                selected_response=q.text_for(chosen),
                selected_tone=tone,
                selected_variant=chosen,
                is_dual=False,
            ),
        )
        logger.info("Query %d: selected %s (%s)", index, chosen.value, tone)

        if turn is None:
            return
        # A terminal query keeps its status; only the selection fields change.
        narrow = not query.status.is_terminal
        if narrow:
            turn.counted = (chosen,)
        for other, session in turn.sessions.items():
            if other is not chosen and session.active:
                session.cancel()
        if narrow:
            self._refresh_status(index)

    def cancel(self, index: int, variant: Variant | str | None = None) -> bool:
        """Cancel one variant's stream, or all of the query's streams."""
        turn = self._turns.get(index)
        if turn is None:
            return False
        targets = turn.sessions.values() if variant is None else [turn.sessions.get(Variant(variant))]
        cancelled = False
        for session in list(targets):
            if session is not None and session.cancel():
                cancelled = True
        return cancelled

    async def wait(self, index: int) -> Status | None:
        turn = self._turns.get(index)
        if turn is None:
            return None
        await asyncio.gather(*(s.wait() for s in turn.sessions.values()))
        query = self._store.get(index)
        return query.status if query else None

    async def wait_all(self) -> None:
        sessions = [s for t in self._turns.values() for s in t.sessions.values()]
        await asyncio.gather(*(s.wait() for s in sessions))

    def reset(self) -> None:
        """Cancel every stream and start an empty conversation."""
        turns, self._turns = self._turns, {}
        for turn in turns.values():
            for session in turn.sessions.values():
                session.cancel()
        self._store.clear()

    async def aclose(self) -> None:
        for turn in self._turns.values():
            for session in turn.sessions.values():
                session.cancel()
        await self.wait_all()

    def _start_session(self, index: int, variant: Variant) -> StreamSession:
        turn = self._turns[index]
        session = StreamSession(
            self._backend,
            StreamRequest(
                message=self._store.queries[index].prompt,
                tone=self._settings.tone_for(variant),
                num_results=self._settings.num_results,
            ),
            query_index=index,
            variant=variant,
            on_text=self._on_text,
            on_status=self._on_status,
            debounce_sec=self._settings.debounce_sec,
            timeout_sec=self._settings.timeout_sec,
            charset=self._settings.charset,
            text_mode=self._settings.text_mode,
        )
        # One writer per slot: detach the old session before cancelling it.
        previous = turn.sessions.get(variant)
        turn.sessions[variant] = session
        if previous is not None and previous.active:
            logger.warning("Query %d/%s: replacing active stream", index, variant.value)
            previous.cancel()
        session.start()
        return session

    def _is_current(self, session: StreamSession) -> bool:
        turn = self._turns.get(session.query_index)
        return turn is not None and turn.sessions.get(session.variant) is session

    def _on_text(self, session: StreamSession, text: str) -> None:
        if not self._is_current(session):
            return
        variant = session.variant

        def apply(q: Query) -> Query:
            q = q.with_text(variant, text)
            if q.selected_variant is variant:
                q = replace(q, selected_response=text)
            return q

        self._store.update(session.query_index, apply)

    def _on_status(self, session: StreamSession) -> None:
        if not self._is_current(session):
            return
        self._refresh_status(session.query_index)

    def _refresh_status(self, index: int) -> None:
        turn = self._turns[index]
        counted = [turn.sessions[v] for v in turn.counted if v in turn.sessions]
        status = combine_status(s.status for s in counted)
        error = next((s.error for s in counted if s.status is Status.ERROR), None)

        def apply(q: Query) -> Query:
            if status is Status.ERROR:
                return replace(q, status=status, error=error)
            return replace(q, status=status)

        self._store.update(index, apply)
