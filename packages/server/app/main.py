"""
Wampums Access Core API Server

Entry point for the FastAPI application.
"""

import logging

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1 import router as api_v1_router
from app.core.catalog import get_catalog
from app.core.config import get_settings
from app.core.database import engine
from app.core.errors import AccessError
from app.core.middleware import DemoReadOnlyMiddleware
from app.core.redis import close_redis, get_redis

settings = get_settings()
log = structlog.get_logger()


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    return exc.to_response()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Wampums Access Core",
        description="Role resolution and multi-tenant authorization for Wampums.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (last added is outermost)
    app.add_middleware(DemoReadOnlyMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Organization-ID"],
    )

    app.add_exception_handler(AccessError, access_error_handler)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the membership store and Redis must answer."""
        checks = {"database": "ok", "redis": "ok"}
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            log.error("ready.database_unavailable", error=str(exc))
            checks["database"] = "unavailable"
        try:
            client = await get_redis()
            await client.ping()
        except (RedisError, OSError) as exc:
            log.error("ready.redis_unavailable", error=str(exc))
            checks["redis"] = "unavailable"

        if all(value == "ok" for value in checks.values()):
            return {"status": "ready", "checks": checks}
        return JSONResponse(status_code=503, content={"status": "unavailable", "checks": checks})

    @app.on_event("startup")
    async def on_startup():
        catalog = get_catalog()
        log.info(
            "Wampums access core starting",
            roles=len(catalog.roles),
            permissions=len(catalog.permissions),
        )
        if settings.secret_key == "CHANGE_ME_IN_PRODUCTION" and not settings.debug:
            log.warning("config.default_secret_key")

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Wampums access core shutting down")
        await close_redis()

    return app


app = create_app()
