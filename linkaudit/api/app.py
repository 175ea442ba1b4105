"""FastAPI application factory.

Lifespan
--------
On startup the app builds the job store selected by ``STORE_BACKEND`` and an
:class:`~linkaudit.analysis.orchestrator.AnalysisOrchestrator` on top of it,
both shared across requests via ``request.app.state``.  On shutdown every
outstanding analysis is cancelled and a SQLite store is closed.

Routers
-------
    /analyze   — start, poll, cancel, list and export analyses
    /health    — liveness probe
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from linkaudit.analysis.orchestrator import AnalysisOrchestrator
from linkaudit.config import settings
from linkaudit.log import get_logger
from linkaudit.store import SqliteJobStore, create_store

from linkaudit.api.routers import analyze as analyze_router
from linkaudit.api.routers import health as health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the store and orchestrator on startup, stop running jobs on shutdown."""
    settings.ensure_workspace()
    store = create_store(settings)
    app.state.store = store
    app.state.orchestrator = AnalysisOrchestrator(store)
    logger.info("[API] started with %s store", settings.store_backend)
    try:
        yield
    finally:
        await app.state.orchestrator.shutdown()
        if isinstance(app.state.store, SqliteJobStore):
            app.state.store.close()


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and query parameters as 400s."""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": errors})


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="linkaudit API",
        description=(
            "REST interface for the linkaudit broken-link analysis engine. "
            "Starts background analyses of a single page, reports their "
            "progress and serves the results as JSON, CSV or HTML."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]

    app.include_router(analyze_router.router, prefix="/analyze", tags=["analyze"])
    app.include_router(health_router.router, tags=["health"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn linkaudit.api.app:app --reload
app = create_app()
