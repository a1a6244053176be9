"""
Festival Registration API - Main Application Entry Point

Registration and ticketing for a college festival:
- One registration state machine shared by alumni, accommodation, delegate,
  event and merchandise domains
- Payments delegated to the TiQR booking provider, reconciled by client
  polling and provider webhooks
- Delegate rooms booked as a single group payment
- Structured logging with request correlation, Prometheus metrics and
  optional Sentry error telemetry
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from festreg.api.middleware import RequestLoggingMiddleware
from festreg.api.router import api_router
from festreg.context import AppContext, build_context
from festreg.core.config import get_settings
from festreg.core.errors import AppError
from festreg.core.logging import get_logger, setup_logging
from festreg.core.metrics import metrics_endpoint
from festreg.core.telemetry import capture_exception, init_telemetry
from festreg.infrastructure import redis_status

logger = get_logger(__name__)


def _error_body(message: str, details=None) -> dict:
    body = {"error": True, "message": message}
    if details is not None:
        body["details"] = details
    return body


def _caller(request: Request) -> tuple[Optional[str], Optional[str]]:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        return None, None
    return identity.uid, identity.email


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        uid, _ = _caller(request)
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "request_error",
            status_code=exc.status_code,
            error=type(exc).__name__,
            message=exc.message,
            route=request.url.path,
            method=request.method,
            uid=uid,
        )
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg", "invalid value"),
            }
            for error in exc.errors()
        ]
        logger.info("request_invalid", route=request.url.path, method=request.method, errors=len(details))
        return JSONResponse(status_code=400, content=_error_body("Invalid request body", details))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        uid, email = _caller(request)
        logger.exception(
            "request_unhandled_error",
            route=request.url.path,
            method=request.method,
            uid=uid,
        )
        capture_exception(
            exc,
            route=request.url.path,
            method=request.method,
            headers=dict(request.headers),
            uid=uid,
            email=email,
        )
        return JSONResponse(status_code=500, content=_error_body("Internal Server Error"))


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the application. Tests pass a ready ``AppContext``; otherwise one is
    built from settings at startup and closed at shutdown.
    """
    settings = context.settings if context is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: startup and shutdown hooks."""
        owns_context = context is None
        if owns_context:
            setup_logging()
            init_telemetry(settings)
            app.state.context = await build_context(settings)

        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
        )
        if app.state.context.redis is None:
            logger.warning("redis_unavailable", message="Running without token revocation checks")

        yield

        if owns_context:
            await app.state.context.close()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Festival registration and ticketing API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for Docker and load balancers."""
        ctx: AppContext = request.app.state.context
        database = {"status": "connected"}
        try:
            async with ctx.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("health_database_failed", error=str(e))
            database = {"status": "error", "error": str(e)}

        return {
            "status": "healthy" if database["status"] == "connected" else "degraded",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": database,
            "cache": await redis_status(ctx.redis),
        }

    @app.get("/metrics", tags=["Health"], include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
