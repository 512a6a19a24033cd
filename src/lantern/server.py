"""FastAPI ingestion service for Lantern.

Accepts telemetry batches from a capture layer, keeps each session's
classification current, and exposes the latest verdict.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lantern.config import LanternConfig, load_config
from lantern.engine import BehaviorEngine
from lantern.errors import LanternError
from lantern.models import ClassificationResult, TelemetryEvent  # noqa: TC001
from lantern.storage import ResultStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    "DUPLICATE_SESSION": 409,
    "SESSION_NOT_FOUND": 404,
    "INVALID_EVENT": 422,
}


class EventBatch(BaseModel):
    """Request body for telemetry ingestion."""

    events: list[TelemetryEvent] = Field(min_length=1)


class SessionSummary(BaseModel):
    """Current state of a session as reported by the API."""

    session_id: str
    started_at: float
    verdict: str
    confidence: float
    scores: dict[str, float]
    page_visits: int
    pointer_samples: int
    scroll_samples: int
    outbound_calls: int
    interactions: int
    evaluation_count: int


class LanternServer:
    """Core server that owns the engine and the result store.

    The engine is created eagerly so the app can serve requests even when
    the ASGI lifespan is not run (as in tests); result persistence is set
    up on startup.
    """

    def __init__(
        self,
        config: LanternConfig | None = None,
        engine: BehaviorEngine | None = None,
    ) -> None:
        """Initialize the Lantern server.

        Args:
            config: Optional configuration. If None, loads from lantern.yaml.
            engine: Optional pre-built engine, e.g. with reactions registered.
        """
        self.config = config or load_config()
        self.engine = engine or BehaviorEngine(self.config)
        self.storage: ResultStore | None = None
        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            self._startup()
            yield
            self._shutdown()

        app = FastAPI(title="Lantern", lifespan=lifespan)
        app.add_exception_handler(LanternError, self._lantern_error_handler)

        @app.get("/health")
        def health_check() -> dict[str, str]:
            return {"status": "ok"}

        @app.get("/profiles")
        def list_profiles() -> dict[str, Any]:
            return {name: p.model_dump() for name, p in self.engine.profiles.items()}

        @app.post("/sessions/{session_id}", status_code=201)
        def create_session(session_id: str) -> SessionSummary:
            self.engine.store.create_session(session_id)
            return self._summary(session_id)

        @app.get("/sessions/{session_id}")
        def get_session(session_id: str) -> SessionSummary:
            return self._summary(session_id)

        @app.delete("/sessions/{session_id}", status_code=204)
        def delete_session(session_id: str) -> Response:
            self.engine.remove_session(session_id)
            return Response(status_code=204)

        @app.post("/sessions/{session_id}/events")
        def ingest_events(session_id: str, batch: EventBatch) -> ClassificationResult:
            return self.engine.ingest_many(session_id, batch.events)

        return app

    def _startup(self) -> None:
        """Attach result persistence on server start."""
        self.storage = ResultStore(
            db_path=self.config.storage.database,
            log_path=self.config.storage.log_file,
        )
        self.engine.add_listener(self.storage.save_result)
        logger.info(
            "Lantern started on %s:%d with %d archetypes",
            self.config.server.host,
            self.config.server.port,
            len(self.engine.profiles),
        )

    def _shutdown(self) -> None:
        logger.info("Lantern shutting down with %d live sessions", len(self.engine.store))

    def _summary(self, session_id: str) -> SessionSummary:
        with self.engine.store.lock(session_id) as session:
            return SessionSummary(
                session_id=session.id,
                started_at=session.started_at,
                verdict=session.verdict,
                confidence=session.confidence,
                scores=dict(session.scores),
                page_visits=len(session.page_visits),
                pointer_samples=len(session.pointer_samples),
                scroll_samples=len(session.scroll_samples),
                outbound_calls=len(session.outbound_calls),
                interactions=len(session.interactions),
                evaluation_count=session.evaluation_count,
            )

    async def _lantern_error_handler(self, request: Request, exc: LanternError) -> Response:
        """Render a LanternError as a JSON error body."""
        status_code = _ERROR_STATUS.get(exc.code, 400)
        logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.code)
        return JSONResponse(exc.to_dict(), status_code=status_code)


def create_app(config_path: str | None = None) -> FastAPI:
    """Create a Lantern FastAPI application.

    This is the main entry point for ASGI servers like uvicorn.

    Args:
        config_path: Optional path to the lantern.yaml config file.

    Returns:
        A configured FastAPI application.
    """
    config = load_config(config_path)
    server = LanternServer(config)
    return server.app
