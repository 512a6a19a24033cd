"""Core data models for Lantern."""

from __future__ import annotations

import enum
import time
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class Archetype(enum.StrEnum):
    """Behavioral archetypes a session can be classified into.

    Declaration order is the tie-break order used by the resolver.
    """

    HUMAN = "human"
    PROGRAMMATIC = "programmatic"
    MIXED = "mixed"
    SCANNER = "scanner"


UNKNOWN = "unknown"


def now_ms() -> float:
    """Return the current wall-clock time in milliseconds."""
    return time.time() * 1000.0


# ---------------------------------------------------------------------------
# Session records
# ---------------------------------------------------------------------------


class PageVisit(BaseModel):
    """A single page navigation within a session."""

    path: str
    arrived_at: float = Field(description="Arrival timestamp in milliseconds")
    since_previous_ms: float = Field(
        default=0.0, description="Time since the previous visit's arrival, 0 for the first"
    )
    departed_at: float | None = None
    time_on_page_ms: float | None = None


class PointerSample(BaseModel):
    """A pointer position sample."""

    x: float
    y: float
    timestamp: float
    since_previous_ms: float = 0.0


class ScrollSample(BaseModel):
    """A vertical scroll position sample."""

    offset: float = Field(description="Vertical scroll offset in pixels")
    timestamp: float
    since_previous_ms: float = 0.0
    viewport_height: float
    document_height: float


class OutboundCall(BaseModel):
    """An outbound call (fetch/XHR/API request) made from the page."""

    target: str
    timestamp: float
    method: str = "GET"


class Interaction(BaseModel):
    """A free-form interaction record (focus change, click, key press...)."""

    kind: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: float


class Session(BaseModel):
    """Aggregate telemetry and classification state for one visitor.

    Created on first observation and mutated in place by the session store
    and the resolver. The score vector always holds one entry per known
    archetype once the session has been created by a store.
    """

    id: str
    started_at: float = Field(default_factory=now_ms)
    page_visits: list[PageVisit] = Field(default_factory=list)
    pointer_samples: list[PointerSample] = Field(default_factory=list)
    scroll_samples: list[ScrollSample] = Field(default_factory=list)
    outbound_calls: list[OutboundCall] = Field(default_factory=list)
    interactions: list[Interaction] = Field(default_factory=list)
    scores: dict[str, float] = Field(default_factory=dict)
    confidence: float = 0.0
    verdict: str = UNKNOWN
    evaluated_at: datetime | None = None
    evaluation_count: int = 0

    @property
    def paths(self) -> list[str]:
        """Return visited paths in arrival order."""
        return [visit.path for visit in self.page_visits]


# ---------------------------------------------------------------------------
# Classification output
# ---------------------------------------------------------------------------


class Contribution(BaseModel):
    """Partial score contribution produced by one feature extractor."""

    name: str
    scores: dict[str, float] = Field(default_factory=dict)
    features: dict[str, float | bool] = Field(default_factory=dict)
    abstained: bool = False


class ClassificationResult(BaseModel):
    """The stable, loggable artifact produced by every evaluation pass."""

    session_id: str
    verdict: str = UNKNOWN
    confidence: float = 0.0
    scores: dict[str, float] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    contributions: list[Contribution] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Inbound telemetry events
# ---------------------------------------------------------------------------


class PageVisitEvent(BaseModel):
    type: Literal["page_visit"] = "page_visit"
    path: str
    timestamp: float


class PageDepartureEvent(BaseModel):
    type: Literal["page_departure"] = "page_departure"
    timestamp: float


class PointerEvent(BaseModel):
    type: Literal["pointer"] = "pointer"
    x: float
    y: float
    timestamp: float


class ScrollEvent(BaseModel):
    type: Literal["scroll"] = "scroll"
    offset: float
    timestamp: float
    viewport_height: float
    document_height: float


class OutboundCallEvent(BaseModel):
    type: Literal["outbound_call"] = "outbound_call"
    target: str
    method: str = "GET"
    timestamp: float


class InteractionEvent(BaseModel):
    type: Literal["interaction"] = "interaction"
    kind: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: float


TelemetryEvent = Annotated[
    PageVisitEvent
    | PageDepartureEvent
    | PointerEvent
    | ScrollEvent
    | OutboundCallEvent
    | InteractionEvent,
    Field(discriminator="type"),
]


class SessionEnvelope(BaseModel):
    """One line of a replay file: a telemetry event tagged with its session."""

    session_id: str
    event: TelemetryEvent
