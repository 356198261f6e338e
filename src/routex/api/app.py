"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routex.config import get_settings
from routex.errors import (
    AuthorizationError,
    ExecutionError,
    RoutexError,
    StateError,
)
from routex.ledger.database import close_db, get_db, get_session_factory, init_db
from routex.ledger.repository import ConfigRepository, persist_swaps
from routex.swap_engine.engine import SwapEngine
from routex.swap_engine.factory import (
    attach_estimator,
    build_dry_run_engine,
    create_engine,
    create_remote_estimator,
)

logger = logging.getLogger(__name__)


def status_for(error: RoutexError) -> int:
    """HTTP status for an engine error."""
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, StateError):
        return 409
    if isinstance(error, ExecutionError):
        return 422
    return 400


async def routex_error_handler(request: Request, exc: RoutexError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"error": exc.code, "detail": exc.message},
    )


async def load_engine() -> SwapEngine:
    """Engine for the running service: demo deployment or persisted configuration."""
    settings = get_settings()
    if settings.dry_run:
        return await build_dry_run_engine(settings)

    engine = create_engine(settings)
    await init_db()
    async with get_db() as session:
        await ConfigRepository(session).load_store(engine.store)
    estimator = create_remote_estimator(settings)
    if estimator is not None:
        attach_estimator(engine, estimator)
    logger.info(f"Loaded {len(engine.store.routes)} routes from the database")
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await init_db()
    if app.state.engine is None:
        app.state.engine = await load_engine()
    app.state.engine.add_listener(persist_swaps(get_session_factory()))
    yield
    # Shutdown
    async with get_db() as session:
        await ConfigRepository(session).save_store(app.state.engine.store)
    await close_db()


def create_app(engine: Optional[SwapEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Routex API",
        description="Multi-protocol asset swap routing engine",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.engine = engine

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RoutexError, routex_error_handler)

    # Register routes
    from routex.api.routers import admin, swaps
    from routex.api.routes import health

    app.include_router(health.router, tags=["Health"])
    app.include_router(swaps.router, prefix="/api/v1", tags=["Swaps"])
    app.include_router(admin.router, tags=["Admin"])

    return app
