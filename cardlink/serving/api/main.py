"""
FastAPI Application Factory

Creates and configures the main API application.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import structlog

from cardlink.config import get_settings
from cardlink.errors import CardlinkError
from cardlink.serving.api.middleware import (
    RequestLoggingMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
)
from cardlink.serving.api.routes import (
    health_router,
    slugs_router,
    identity_router,
    events_router,
    analytics_router,
    accounts_router,
)

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"


async def cardlink_error_handler(request: Request, exc: CardlinkError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request failed",
        path=request.url.path,
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in errors]
    message = f"Invalid or missing fields: {', '.join(f for f in fields if f)}" if any(fields) else "Invalid request"
    logger.info("Request validation failed", path=request.url.path, fields=fields)
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message},
    )


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Unhandled database error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


def create_api_app(lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context (database and logging setup)

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Cardlink Profile Engagement API",
        description="Public card links, Google account linking, engagement tracking and analytics",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Custom middleware
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Error mapping
    app.add_exception_handler(CardlinkError, cardlink_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)

    # API routes
    app.include_router(health_router, prefix=API_PREFIX, tags=["Health"])
    app.include_router(slugs_router, prefix=API_PREFIX, tags=["Slugs"])
    app.include_router(identity_router, prefix=f"{API_PREFIX}/identity", tags=["Identity"])
    app.include_router(events_router, prefix=f"{API_PREFIX}/events", tags=["Events"])
    app.include_router(analytics_router, prefix=f"{API_PREFIX}/analytics", tags=["Analytics"])
    app.include_router(accounts_router, prefix=f"{API_PREFIX}/accounts", tags=["Accounts"])

    @app.get(f"{API_PREFIX}/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
        }

    return app
