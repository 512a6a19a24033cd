"""Behavior engine tying the session store, resolver, and dispatcher together.

The engine is what a hosting layer talks to. Each recorded telemetry
event is appended under the session's lock and, unless the caller is
batching, triggers one evaluation pass followed by one dispatch call.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from lantern.classify import ClassificationResolver
from lantern.config import LanternConfig
from lantern.dispatch import ReactionDispatcher
from lantern.errors import DuplicateSessionError, InvalidEventError, SessionNotFoundError
from lantern.features import Extractor
from lantern.models import (
    ClassificationResult,
    InteractionEvent,
    OutboundCallEvent,
    PageDepartureEvent,
    PageVisitEvent,
    PointerEvent,
    ScrollEvent,
    Session,
    TelemetryEvent,
)
from lantern.store import SessionStore

logger = logging.getLogger(__name__)

ResultListener = Callable[[ClassificationResult], None]


class BehaviorEngine:
    """Records telemetry per session and keeps its classification current."""

    def __init__(
        self,
        config: LanternConfig | None = None,
        store: SessionStore | None = None,
        dispatcher: ReactionDispatcher | None = None,
        extractors: Sequence[Extractor] | None = None,
        auto_create: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Active configuration. Defaults to built-in settings.
            store: Session store to use. A new one is created if omitted.
            dispatcher: Reaction dispatcher. A handler-less one is created
                if omitted.
            extractors: Extractors to run instead of the built-in five.
            auto_create: Create sessions on first observation instead of
                raising SessionNotFoundError.
        """
        self.config = config or LanternConfig()
        self.profiles = self.config.profile_table()
        self.store = store or SessionStore(
            archetypes=self.profiles,
            pointer_cap=self.config.sampling.pointer_cap,
            scroll_cap=self.config.sampling.scroll_cap,
        )
        self.resolver = ClassificationResolver(self.config, self.profiles, extractors)
        self.dispatcher = dispatcher or ReactionDispatcher(
            threshold=self.config.classification.confidence_threshold
        )
        self.auto_create = auto_create
        self._listeners: list[ResultListener] = []
        self._batch_depth: dict[str, int] = {}
        self._pending: set[str] = set()
        self._latest: dict[str, ClassificationResult] = {}

    def add_listener(self, listener: ResultListener) -> None:
        """Register a callback that receives every ClassificationResult."""
        self._listeners.append(listener)

    # -- session lifecycle --------------------------------------------------

    def get_session(self, session_id: str) -> Session:
        return self.store.get_session(session_id)

    def latest_result(self, session_id: str) -> ClassificationResult | None:
        """Return the result of the most recent evaluation of a session."""
        self.store.get_session(session_id)
        return self._latest.get(session_id)

    def remove_session(self, session_id: str) -> Session:
        """Drop a session and its cached result."""
        self._latest.pop(session_id, None)
        return self.store.remove_session(session_id)

    def _ensure(self, session_id: str, started_at: float | None = None) -> bool:
        """Make sure a session exists, returning True if this call created it."""
        if session_id in self.store:
            return False
        if not self.auto_create:
            raise SessionNotFoundError(session_id)
        try:
            self.store.create_session(session_id, started_at)
        except DuplicateSessionError:
            return False
        return True

    def _discard_if_empty(self, session_id: str) -> None:
        """Drop a session that holds no telemetry at all."""
        with self.store.lock(session_id) as session:
            empty = not (
                session.page_visits
                or session.pointer_samples
                or session.scroll_samples
                or session.outbound_calls
                or session.interactions
            )
        if empty:
            logger.debug("Discarding empty session %s after rejected event", session_id)
            self.remove_session(session_id)

    @contextmanager
    def _recording(self, session_id: str, started_at: float) -> Iterator[None]:
        """Hold the session lock for one append.

        A session created for an event the store then rejects is removed
        again, so a malformed first event leaves no trace.
        """
        created = self._ensure(session_id, started_at)
        try:
            with self.store.lock(session_id):
                yield
        except InvalidEventError:
            if created and session_id in self.store:
                self._discard_if_empty(session_id)
            raise

    # -- evaluation ---------------------------------------------------------

    def evaluate(self, session_id: str) -> ClassificationResult:
        """Run one evaluation pass and dispatch the outcome.

        Raises:
            SessionNotFoundError: If the id is unknown.
        """
        with self.store.lock(session_id) as session:
            result = self.resolver.evaluate(session)
            self.dispatcher.dispatch(session, threshold=self.resolver.threshold)
            self._latest[session_id] = result
        for listener in self._listeners:
            listener(result)
        return result

    def _after_update(self, session_id: str) -> ClassificationResult | None:
        if self._batch_depth.get(session_id):
            self._pending.add(session_id)
            return None
        return self.evaluate(session_id)

    def _leave_batch(self, session_id: str) -> bool:
        """Close one batch level, returning True when the outermost one closed."""
        depth = self._batch_depth[session_id] - 1
        if depth:
            self._batch_depth[session_id] = depth
            return False
        del self._batch_depth[session_id]
        return True

    @contextmanager
    def batch(self, session_id: str, started_at: float | None = None) -> Iterator[Session]:
        """Defer evaluation until the block exits, then evaluate once.

        The session lock is held for the whole block. If the block raises,
        records appended before the failure are kept and still evaluated,
        so the score vector always reflects the stored telemetry.
        """
        created = self._ensure(session_id, started_at)
        completed = False
        try:
            with self.store.lock(session_id) as session:
                self._batch_depth[session_id] = self._batch_depth.get(session_id, 0) + 1
                try:
                    yield session
                    completed = True
                finally:
                    if self._leave_batch(session_id):
                        stale = completed or session_id in self._pending
                        self._pending.discard(session_id)
                        if stale:
                            self.evaluate(session_id)
        finally:
            if created and not completed and session_id in self.store:
                self._discard_if_empty(session_id)

    # -- recording ----------------------------------------------------------

    def record_page_visit(
        self, session_id: str, path: str, timestamp: float
    ) -> ClassificationResult | None:
        """Record a page visit and re-evaluate."""
        with self._recording(session_id, timestamp):
            self.store.append_page_visit(session_id, path, timestamp)
            return self._after_update(session_id)

    def record_departure(self, session_id: str, timestamp: float) -> None:
        """Stamp the departure on the current page. No scoring input changes."""
        with self._recording(session_id, timestamp):
            self.store.record_departure(session_id, timestamp)

    def record_pointer_sample(
        self, session_id: str, x: float, y: float, timestamp: float
    ) -> ClassificationResult | None:
        """Record a pointer sample and re-evaluate."""
        with self._recording(session_id, timestamp):
            self.store.append_pointer_sample(session_id, x, y, timestamp)
            return self._after_update(session_id)

    def record_scroll_sample(
        self,
        session_id: str,
        offset: float,
        timestamp: float,
        viewport_height: float,
        document_height: float,
    ) -> ClassificationResult | None:
        """Record a scroll sample and re-evaluate."""
        with self._recording(session_id, timestamp):
            self.store.append_scroll_sample(
                session_id, offset, timestamp, viewport_height, document_height
            )
            return self._after_update(session_id)

    def record_outbound_call(
        self, session_id: str, target: str, method: str, timestamp: float
    ) -> ClassificationResult | None:
        """Record an outbound call and re-evaluate."""
        with self._recording(session_id, timestamp):
            self.store.append_outbound_call(session_id, target, method, timestamp)
            return self._after_update(session_id)

    def record_interaction(
        self,
        session_id: str,
        kind: str,
        payload: dict[str, Any] | None,
        timestamp: float,
    ) -> None:
        """Record a free-form interaction. No scoring input changes."""
        with self._recording(session_id, timestamp):
            self.store.append_interaction(session_id, kind, payload, timestamp)

    def ingest(self, session_id: str, event: TelemetryEvent) -> ClassificationResult | None:
        """Apply one inbound telemetry event to a session.

        Returns:
            The evaluation result if the event triggered one, else None.
        """
        if isinstance(event, PageVisitEvent):
            return self.record_page_visit(session_id, event.path, event.timestamp)
        if isinstance(event, PageDepartureEvent):
            self.record_departure(session_id, event.timestamp)
            return None
        if isinstance(event, PointerEvent):
            return self.record_pointer_sample(session_id, event.x, event.y, event.timestamp)
        if isinstance(event, ScrollEvent):
            return self.record_scroll_sample(
                session_id,
                event.offset,
                event.timestamp,
                event.viewport_height,
                event.document_height,
            )
        if isinstance(event, OutboundCallEvent):
            return self.record_outbound_call(
                session_id, event.target, event.method, event.timestamp
            )
        if isinstance(event, InteractionEvent):
            self.record_interaction(session_id, event.kind, event.payload, event.timestamp)
            return None
        msg = f"Unsupported telemetry event: {type(event).__name__}"
        raise TypeError(msg)

    def ingest_many(
        self, session_id: str, events: Iterable[TelemetryEvent]
    ) -> ClassificationResult:
        """Apply several events to one session with a single evaluation pass."""
        events = list(events)
        started_at = events[0].timestamp if events else None
        with self.batch(session_id, started_at):
            for event in events:
                self.ingest(session_id, event)
        result = self._latest[session_id]
        logger.debug("Ingested batch for session %s -> %s", session_id, result.verdict)
        return result
