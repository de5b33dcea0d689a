"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fairsearch import __version__
from fairsearch.api.routes import admin_router, health_router, search_router
from fairsearch.api.schemas import APIError, ErrorDetail
from fairsearch.config import get_settings
from fairsearch.core.exceptions import (
    IndexEngineError,
    InvalidQuery,
    NotFoundError,
    ReconciliationError,
)
from fairsearch.services.search import DirectorySearchService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Handles startup and shutdown of resources. A failure to open the index
    propagates and stops the application from serving.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info(f"Starting directory search service ({settings.search_backend} index)...")
    service = DirectorySearchService.from_settings(settings)
    await service.start()
    app.state.search_service = service
    logger.info("Application startup complete")

    yield

    # Cleanup
    logger.info("Shutting down application...")
    app.state.search_service = None
    await service.stop()
    logger.info("Application shutdown complete")


def _error_response(status_code: int, code: str, exc, field: str | None = None) -> JSONResponse:
    body = APIError(
        error=ErrorDetail(code=code, message=exc.message, field=field, details=exc.details or None)
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


async def invalid_query_handler(request: Request, exc: InvalidQuery) -> JSONResponse:
    return _error_response(422, "invalid_query", exc, field=exc.field)


async def index_error_handler(request: Request, exc: IndexEngineError) -> JSONResponse:
    logger.error(f"Index failure on {request.url.path}: {exc.message}")
    return _error_response(503, "index_unavailable", exc)


async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
    logger.error(f"Reconciliation failed: {exc.message}")
    return _error_response(503, "reconciliation_failed", exc)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(404, "not_found", exc)


def create_app(
    *,
    title: str = "Fairsearch API",
    description: str = "Search for a sustainability-tagged directory of places",
    version: str = __version__,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        title: API title for OpenAPI docs
        description: API description for OpenAPI docs
        version: API version
        cors_origins: List of allowed CORS origins

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=title,
        description=description,
        version=version,
        lifespan=lifespan,
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Configure CORS
    if cors_origins is None:
        cors_origins = ["http://localhost:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Map domain errors to HTTP
    app.add_exception_handler(InvalidQuery, invalid_query_handler)
    app.add_exception_handler(IndexEngineError, index_error_handler)
    app.add_exception_handler(ReconciliationError, reconciliation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)

    # Register routes
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(search_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")

    return app


# For uvicorn direct execution
app = create_app()
