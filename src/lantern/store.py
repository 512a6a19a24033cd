"""In-memory session state store.

Holds one Session per visitor and appends telemetry to it. Every write to
a session happens under that session's lock, so appends for one session
are serialized while different sessions proceed independently. Malformed
telemetry is rejected here with InvalidEventError and never reaches the
extractors.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from lantern.errors import DuplicateSessionError, InvalidEventError, SessionNotFoundError
from lantern.models import (
    Interaction,
    OutboundCall,
    PageVisit,
    PointerSample,
    ScrollSample,
    Session,
    now_ms,
)
from lantern.profiles import DEFAULT_PROFILES

logger = logging.getLogger(__name__)

DEFAULT_POINTER_CAP = 100
DEFAULT_SCROLL_CAP = 50


def _check_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidEventError(f"{name} must be a finite number", details={name: repr(value)})


def _check_timestamp(value: float, previous: float | None = None) -> None:
    _check_finite("timestamp", value)
    if value < 0:
        raise InvalidEventError("timestamp must not be negative", details={"timestamp": value})
    if previous is not None and value < previous:
        raise InvalidEventError(
            "timestamp precedes the previous record",
            details={"timestamp": value, "previous": previous},
        )


def _check_text(name: str, value: str) -> None:
    if not value or not value.strip():
        raise InvalidEventError(f"{name} must not be empty")


def _evict(records: list[Any], cap: int) -> None:
    overflow = len(records) - cap
    if overflow > 0:
        del records[:overflow]


class SessionStore:
    """Per-session telemetry aggregate keyed by session id.

    The store is created by the host and injected wherever sessions are
    needed; it owns no global state. Session expiry is left to the caller
    via remove_session().
    """

    def __init__(
        self,
        archetypes: Iterable[str] | None = None,
        pointer_cap: int = DEFAULT_POINTER_CAP,
        scroll_cap: int = DEFAULT_SCROLL_CAP,
    ) -> None:
        """Initialize an empty store.

        Args:
            archetypes: Archetype names used to seed each score vector.
                Defaults to the built-in profile table.
            pointer_cap: Maximum retained pointer samples per session.
            scroll_cap: Maximum retained scroll samples per session.
        """
        self.archetypes = list(archetypes if archetypes is not None else DEFAULT_PROFILES)
        self.pointer_cap = pointer_cap
        self.scroll_cap = scroll_cap
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> list[str]:
        """Return the ids of all live sessions."""
        with self._registry_lock:
            return list(self._sessions)

    # -- lifecycle ----------------------------------------------------------

    def create_session(self, session_id: str, started_at: float | None = None) -> Session:
        """Create a session with empty sequences and a zeroed score vector.

        Raises:
            DuplicateSessionError: If the id already exists.
            InvalidEventError: If the id is empty or started_at is invalid.
        """
        _check_text("session_id", session_id)
        if started_at is not None:
            _check_timestamp(started_at)
        with self._registry_lock:
            if session_id in self._sessions:
                raise DuplicateSessionError(session_id)
            session = Session(
                id=session_id,
                started_at=started_at if started_at is not None else now_ms(),
                scores=dict.fromkeys(self.archetypes, 0.0),
            )
            self._sessions[session_id] = session
            self._locks[session_id] = threading.RLock()
        logger.debug("Created session %s", session_id)
        return session

    def get_session(self, session_id: str) -> Session:
        """Return the session for an id.

        Raises:
            SessionNotFoundError: If the id is unknown.
        """
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def get_or_create_session(self, session_id: str, started_at: float | None = None) -> Session:
        """Return the existing session or create it on first observation."""
        try:
            return self.create_session(session_id, started_at)
        except DuplicateSessionError:
            return self.get_session(session_id)

    def remove_session(self, session_id: str) -> Session:
        """Drop a session from the store and return it.

        Raises:
            SessionNotFoundError: If the id is unknown.
        """
        with self._registry_lock:
            session = self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        logger.debug("Removed session %s", session_id)
        return session

    @contextmanager
    def lock(self, session_id: str) -> Iterator[Session]:
        """Hold the single-writer lock for a session.

        The lock is reentrant, so appends made while holding it do not
        deadlock. Readers holding it observe a consistent snapshot.

        Raises:
            SessionNotFoundError: If the id is unknown.
        """
        session_lock = self._locks.get(session_id)
        if session_lock is None:
            raise SessionNotFoundError(session_id)
        with session_lock:
            yield self.get_session(session_id)

    # -- appends ------------------------------------------------------------

    def append_page_visit(self, session_id: str, path: str, arrived_at: float) -> PageVisit:
        """Append a page visit, deriving the time since the previous arrival."""
        _check_text("path", path)
        with self.lock(session_id) as session:
            last = session.page_visits[-1] if session.page_visits else None
            _check_timestamp(arrived_at, last.arrived_at if last else None)
            visit = PageVisit(
                path=path,
                arrived_at=arrived_at,
                since_previous_ms=arrived_at - last.arrived_at if last else 0.0,
            )
            session.page_visits.append(visit)
            return visit

    def record_departure(self, session_id: str, departed_at: float) -> PageVisit | None:
        """Stamp departure time and time-on-page on the most recent visit.

        Returns:
            The updated visit, or None when no visit has been recorded.
        """
        with self.lock(session_id) as session:
            if not session.page_visits:
                return None
            visit = session.page_visits[-1]
            _check_timestamp(departed_at, visit.arrived_at)
            visit.departed_at = departed_at
            visit.time_on_page_ms = departed_at - visit.arrived_at
            return visit

    def append_pointer_sample(
        self, session_id: str, x: float, y: float, timestamp: float
    ) -> PointerSample:
        """Append a pointer sample, evicting the oldest past the cap."""
        _check_finite("x", x)
        _check_finite("y", y)
        with self.lock(session_id) as session:
            samples = session.pointer_samples
            previous = samples[-1].timestamp if samples else None
            _check_timestamp(timestamp, previous)
            sample = PointerSample(
                x=x,
                y=y,
                timestamp=timestamp,
                since_previous_ms=timestamp - previous if previous is not None else 0.0,
            )
            samples.append(sample)
            _evict(samples, self.pointer_cap)
            return sample

    def append_scroll_sample(
        self,
        session_id: str,
        offset: float,
        timestamp: float,
        viewport_height: float,
        document_height: float,
    ) -> ScrollSample:
        """Append a scroll sample, evicting the oldest past the cap."""
        _check_finite("offset", offset)
        heights = {"viewport_height": viewport_height, "document_height": document_height}
        for name, value in heights.items():
            _check_finite(name, value)
            if value < 0:
                raise InvalidEventError(f"{name} must not be negative", details={name: value})
        with self.lock(session_id) as session:
            samples = session.scroll_samples
            previous = samples[-1].timestamp if samples else None
            _check_timestamp(timestamp, previous)
            sample = ScrollSample(
                offset=offset,
                timestamp=timestamp,
                since_previous_ms=timestamp - previous if previous is not None else 0.0,
                viewport_height=viewport_height,
                document_height=document_height,
            )
            samples.append(sample)
            _evict(samples, self.scroll_cap)
            return sample

    def append_outbound_call(
        self, session_id: str, target: str, method: str, timestamp: float
    ) -> OutboundCall:
        """Append an outbound call record."""
        _check_text("target", target)
        _check_text("method", method)
        with self.lock(session_id) as session:
            calls = session.outbound_calls
            _check_timestamp(timestamp, calls[-1].timestamp if calls else None)
            call = OutboundCall(target=target, method=method.upper(), timestamp=timestamp)
            calls.append(call)
            return call

    def append_interaction(
        self,
        session_id: str,
        kind: str,
        payload: dict[str, Any] | None,
        timestamp: float,
    ) -> Interaction:
        """Append a free-form interaction record."""
        _check_text("kind", kind)
        with self.lock(session_id) as session:
            interactions = session.interactions
            _check_timestamp(timestamp, interactions[-1].timestamp if interactions else None)
            interaction = Interaction(kind=kind, payload=payload or {}, timestamp=timestamp)
            interactions.append(interaction)
            return interaction
