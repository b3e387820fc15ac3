"""
FastAPI application for the progression engine.

Provides REST API for:
- Page completion and XP totals
- Module/topic unlock checks and progress dashboards
- Quiz answer submission and attempt history
- Page reflections

The caller's identity arrives in a header set by the identity provider;
see progression.api.deps.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import get_settings
from progression import __version__
from progression.core.errors import ConcurrencyConflict, ContentError, NotFoundError
from progression.core.logging import ensure_logging
from progression.db.database import check_database_health, init_db

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    ensure_logging()
    logger.info("Starting progression service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down progression service...")


app = FastAPI(
    title="Progression Engine",
    description="""
    Learner progression for a Topic -> Module -> Page -> ContentItem catalog.

    ## Features

    - **Completion**: idempotent page completion with exactly-once XP awards
    - **Unlocks**: free, XP threshold, prerequisite and sequential policies
    - **Quizzes**: answer judging with gap-free attempt numbering
    - **Reflections**: one note per learner and page
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Error Mapping
# ========================================


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc), "entity": exc.entity, "id": exc.entity_id},
    )


@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError) -> JSONResponse:
    logger.error(f"Content defect in {exc.content_id}: {exc.reason}")
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "content_id": exc.content_id, "reason": exc.reason},
    )


@app.exception_handler(ConcurrencyConflict)
async def conflict_handler(request: Request, exc: ConcurrencyConflict) -> JSONResponse:
    logger.error(str(exc))
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "progression",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from progression.api.routers import (  # noqa: E402
    progress_router,
    quiz_router,
    reflection_router,
)

app.include_router(progress_router.router, prefix="/api/progress", tags=["Progress"])
app.include_router(quiz_router.router, prefix="/api/quiz", tags=["Quiz"])
app.include_router(reflection_router.router, prefix="/api/reflections", tags=["Reflections"])
