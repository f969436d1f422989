"""
FastAPI application entry point for the feedback backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feedback_backend.auth import router as auth_router
from feedback_backend.config import Settings, get_settings
from feedback_backend.errors import RecordError
from feedback_backend.routes import router
from feedback_backend.schemas import HealthResponse
from feedback_backend.validation import describe_errors

logger = logging.getLogger(__name__)


async def record_error_handler(request: Request, exc: RecordError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": describe_errors(exc)})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application. Passing ``settings`` pins them for every dependency
    that reads ``get_settings``, so backend selection, session lifetime and the
    Redis URL follow them too. Stores are process singletons: call
    ``dependencies.reset_backends()`` before pinning different backends.
    """
    pinned = settings is not None
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="House Feedback Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RecordError, record_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(auth_router)

    @app.get("/health", response_model=HealthResponse, include_in_schema=False)
    def health():
        return HealthResponse(status="ok")

    if pinned:
        app.dependency_overrides[get_settings] = lambda: settings
    logger.info(
        "Feedback backend ready (auth %s)",
        "required" if settings.require_auth else "disabled",
    )
    return app


app = create_app()
