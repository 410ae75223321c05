"""
VibelyTube — Main FastAPI Application

Paste a YouTube link, chat with Cecep about the video.

Startup is two-phase: settings are loaded when the app is created, services
are constructed in the lifespan hook and published on ``app.state``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from vibelytube.core.config import Settings, get_settings
from vibelytube.core.database import Database
from vibelytube.core.exceptions import VibelyError
from vibelytube.schemas.schemas import failure
from vibelytube.services.analysis.analysis_service import AnalysisService
from vibelytube.services.chat.chat_service import ChatService
from vibelytube.services.session.session_store import InMemorySessionStore, SessionStore

logger = structlog.get_logger()


# ── Logging ──────────────────────────────────────────────────────────────

def configure_logging(settings: Settings):
    level = logging.getLevelName(settings.log_level.upper())
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


# ── Error envelope ───────────────────────────────────────────────────────

def register_exception_handlers(app: FastAPI):
    @app.exception_handler(VibelyError)
    async def vibely_error_handler(request: Request, exc: VibelyError):
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content=failure("Invalid request body", details))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=failure(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content=failure("Internal server error", str(exc)))


# ── App factory ──────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    *,
    session_store: Optional[SessionStore] = None,
    analysis_service: Optional[AnalysisService] = None,
    chat_service: Optional[ChatService] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Build the application. Explicit services override the default ones."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown hooks."""
        logger.info("Starting VibelyTube", version=settings.app_version)

        app.state.settings = settings
        app.state.session_store = session_store if session_store is not None else InMemorySessionStore()
        app.state.analysis_service = analysis_service if analysis_service is not None else AnalysisService(settings)
        app.state.chat_service = chat_service if chat_service is not None else ChatService(settings)

        owned_database = database is None and settings.database_enabled
        app.state.database = database
        if owned_database:
            app.state.database = Database(settings.database_url, echo=settings.database_echo)
        if app.state.database is not None:
            await app.state.database.init_db()

        logger.info(
            "VibelyTube ready",
            model=settings.openai_model,
            speech_to_text=settings.enable_speech_to_text,
            database=app.state.database is not None,
        )

        yield

        if owned_database:
            await app.state.database.close()
        logger.info("Shutting down VibelyTube")

    app = FastAPI(
        title=settings.app_name,
        description="YouTube video analysis with a persona chat on top",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics
    app.mount("/metrics", make_asgi_app())

    register_exception_handlers(app)

    from vibelytube.api.routes import admin, vibelytube

    app.include_router(vibelytube.router, prefix=settings.api_prefix)
    app.include_router(admin.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "service": settings.service_name,
            "version": settings.app_version,
            "api_prefix": settings.api_prefix,
            "docs": "/docs",
        }

    return app


app = create_app()
