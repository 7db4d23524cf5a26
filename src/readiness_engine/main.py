"""Readiness engine service entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from readiness_engine import __version__
from readiness_engine.adapters.database import close_database, init_database
from readiness_engine.api.dependencies import PostCompletionRunner, get_settings
from readiness_engine.api.router import router
from readiness_engine.observability import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Startup configures logging, opens the database pool and drains the
    post-completion outbox left over from the previous process.

    Args:
        app: The FastAPI application instance.

    Yields:
        None
    """
    settings = get_settings()
    configure_logging(settings)
    session_factory = init_database(settings)
    await PostCompletionRunner(session_factory, settings).recover()
    logger.info("Service started", service=settings.service_name, version=__version__)
    yield
    await close_database()
    logger.info("Service stopped", service=settings.service_name)


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    application = FastAPI(
        title="Readiness Engine",
        version=__version__,
        lifespan=lifespan,
    )
    application.include_router(router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return application


app: FastAPI = create_app()
