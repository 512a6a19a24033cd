"""Reaction dispatch for resolved classifications.

Handlers are registered per archetype tag; adding an archetype means
registering a handler, not touching the resolver. What a handler does
(toggling features, showing a badge, notifying a service) is up to the
host.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType

from lantern.models import UNKNOWN, Session

logger = logging.getLogger(__name__)

ReactionHandler = Callable[[str, Session], None]


class ReactionDispatcher:
    """Maps a concrete verdict to the handler registered for it."""

    def __init__(self, threshold: float = 0.75, fallback: ReactionHandler | None = None) -> None:
        """Initialize the dispatcher.

        Args:
            threshold: Minimum confidence required before any handler runs.
            fallback: Handler used for verdicts with no registered handler.
        """
        self.threshold = threshold
        self.fallback = fallback
        self._handlers: dict[str, ReactionHandler] = {}

    def register(self, archetype: str, handler: ReactionHandler) -> None:
        """Register the reaction for an archetype, replacing any existing one."""
        if archetype == UNKNOWN:
            msg = "Cannot register a reaction for the 'unknown' verdict"
            raise ValueError(msg)
        self._handlers[str(archetype)] = handler

    def unregister(self, archetype: str) -> None:
        """Remove the reaction for an archetype if one is registered."""
        self._handlers.pop(str(archetype), None)

    def handlers(self) -> Mapping[str, ReactionHandler]:
        """Return a read-only view of the registered handlers."""
        return MappingProxyType(self._handlers)

    def dispatch(self, session: Session, threshold: float | None = None) -> bool:
        """Run the reaction for the session's verdict.

        Does nothing when the verdict is 'unknown' or the confidence is
        below the threshold.

        Args:
            session: An evaluated session.
            threshold: Confidence gate for this call. Defaults to the
                dispatcher's own threshold.

        Returns:
            True if the session carried a concrete verdict, False otherwise.
        """
        verdict = session.verdict
        gate = self.threshold if threshold is None else threshold
        if verdict == UNKNOWN or session.confidence < gate:
            return False

        handler = self._handlers.get(verdict, self.fallback)
        if handler is None:
            logger.debug("No reaction registered for %s (session %s)", verdict, session.id)
            return True

        try:
            handler(verdict, session)
        except Exception as exc:
            logger.warning("Reaction for %s failed on session %s: %s", verdict, session.id, exc)
            raise
        return True
