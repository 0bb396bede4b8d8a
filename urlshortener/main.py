"""
FastAPI Application Entry Point

This module builds the FastAPI application and wires:
- API routes
- Middleware (request logging, CORS)
- The telemetry pipeline lifecycle (started on startup, stopped on shutdown)

Run with:
    uvicorn urlshortener.main:app
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from urlshortener.api import endpoints
from urlshortener.core.logging_config import setup_logging
from urlshortener.core.setting import settings
from urlshortener.core.telemetry_manager import TelemetryRuntime
from urlshortener.db.session import async_session_maker, engine, init_models
from urlshortener.middleware.logging import add_logging_middleware

VERSION = "1.0.0"


def create_app(
    session_maker: async_sessionmaker = async_session_maker,
    bind: AsyncEngine = engine
) -> FastAPI:
    """
    Build the application.

    Args:
        session_maker: Session factory used by the telemetry aggregator
        bind: Engine on which tables are created at startup
    """
    setup_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    app = FastAPI(
        title="URL Shortener Service",
        description="Deterministic, collision-resistant short urls with asynchronous hit telemetry",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Process-wide handle, shared by all requests of this instance
    app.state.telemetry = TelemetryRuntime(session_maker)

    add_logging_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health endpoints defined before router to match before catch-all route
    @app.get("/", tags=["Health"])
    async def root():
        return {
            "message": "URL Shortener Service",
            "version": VERSION,
            "docs": "/docs"
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        return {
            "status": "healthy",
            "telemetry": request.app.state.telemetry.get_stats()
        }

    app.include_router(endpoints.router, tags=["URL Shortener"])

    @app.on_event("startup")
    async def startup_event():
        if settings.CREATE_TABLES_ON_STARTUP:
            await init_models(bind)
        await app.state.telemetry.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.telemetry.shutdown()

    return app


app = create_app()
