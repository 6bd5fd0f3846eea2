"""FastAPI web application for the debate arena."""

import logging
import os
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_default_config
from debate_engine.core import ArenaEngine
from web.endpoints.cron import router as cron_router
from web.endpoints.debates import router as debates_router
from web.endpoints.system import router as system_router
from web.endpoints.tournaments import router as tournaments_router

logger: logging.Logger = logging.getLogger(__name__)


def default_engine() -> ArenaEngine:
    return ArenaEngine(get_default_config())


def get_allowed_origins() -> list[str] | None:
    """Get CORS origins from environment or use development defaults."""
    env_origins: str | None = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        origins = [origin.strip() for origin in env_origins.split(",")]
        return origins
    return None


def create_app(engine_factory: Callable[[], ArenaEngine] = default_engine) -> FastAPI:
    """Build the application; ``engine_factory`` runs once at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifespan - startup and shutdown."""
        engine = engine_factory()
        app.state.engine = engine
        logger.info(f"Arena engine ready (database: {engine.config.system.database_path})")

        yield

        await engine.close()

    app = FastAPI(
        title="Debate Arena",
        description="Turn-based debates judged by AI panels",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware setup
    allowed_origins: list[str] | None = get_allowed_origins()

    if allowed_origins:
        logger.info(f"Setting CORS allowed origins: {allowed_origins}")

        # Production: Use specific origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.info("No ALLOWED_ORIGINS set, using development CORS settings")

        # Development: Allow any localhost/127.0.0.1
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Scheduler routes live at the root so cron paths stay stable
    app.include_router(cron_router)

    app.include_router(system_router, prefix="/v1")
    app.include_router(debates_router, prefix="/v1")
    app.include_router(tournaments_router, prefix="/v1")
    return app


app: FastAPI = create_app()
