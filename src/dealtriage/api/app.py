"""FastAPI application for the DealTriage API."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..analysis.portfolio import PortfolioAggregator
from ..analysis.scoring import ScoreEngine
from ..config import Settings
from ..errors import DealTriageError, ValidationError
from ..services.lead_service import LeadService
from ..services.polling import UnreadCountPoller
from ..storage.lead_store import LeadStore
from .routers import leads, properties

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def _error_body(exc: DealTriageError) -> dict:
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationError):
        body["field"] = exc.field
    return body


def create_app(
    service: Optional[LeadService] = None,
    score_engine: Optional[ScoreEngine] = None,
    unread_poller: Optional[UnreadCountPoller] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API around explicitly constructed services.

    Args:
        service: Lead service. Built over the configured SQLite store if
                not provided.
        score_engine: Score engine for property analysis.
        unread_poller: Optional unread-count poller, started with the app.
        settings: Settings used for defaults.

    Returns:
        Configured FastAPI application
    """
    # Variables outside the DEALTRIAGE_ prefix (FRONTEND_URL) come from .env too
    load_dotenv(Path(".env"))
    settings = settings or Settings()
    service = service or LeadService(LeadStore(settings=settings), settings=settings)
    score_engine = score_engine or ScoreEngine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start and stop background work with the app."""
        if app.state.unread_poller is not None:
            await app.state.unread_poller.start()
        yield
        if app.state.unread_poller is not None:
            await app.state.unread_poller.stop()
        await app.state.lead_service.scheduler.shutdown()

    app = FastAPI(
        title="DealTriage API",
        description="Lead triage and deal evaluation API for real-estate investors",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.lead_service = service
    app.state.score_engine = score_engine
    app.state.portfolio_aggregator = PortfolioAggregator(score_engine.calc)
    app.state.unread_poller = unread_poller

    allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    frontend_url = os.environ.get("FRONTEND_URL")
    if frontend_url:
        allowed_origins.append(frontend_url.rstrip("/"))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    @app.exception_handler(DealTriageError)
    async def handle_dealtriage_error(request: Request, exc: DealTriageError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    app.include_router(leads.router, prefix="/api/leads", tags=["Leads"])
    app.include_router(properties.router, prefix="/api/properties", tags=["Properties"])

    @app.get("/")
    async def root():
        """API root endpoint."""
        return {"name": "DealTriage API", "version": API_VERSION, "docs": "/docs"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
