"""FastAPI application configuration."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from chat_agent.agent.sessions import SchedulePoller, SessionManager, create_session_factory
from chat_agent.api.health import router as health_router
from chat_agent.api.models import ErrorResponse
from chat_agent.api.sessions import router as sessions_router
from chat_agent.database.connection import init_db
from chat_agent.observability.sentry import init_sentry
from chat_agent.utils.logging import configure_logging
from chat_agent.utils.settings import get_settings

configure_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Create the session manager and run the schedule poller for the app's lifetime."""
    settings = get_settings()
    if settings.persist_transcripts:
        init_db()

    # Without persistence an evicted transcript could not be reloaded
    idle_timeout = settings.session_idle_seconds if settings.persist_transcripts else None
    manager = SessionManager(
        create_session_factory(settings),
        idle_timeout_seconds=idle_timeout,
    )
    poller = SchedulePoller(manager, settings.scheduler_poll_seconds)
    application.state.session_manager = manager
    poller.start()

    try:
        yield
    finally:
        poller.stop()
        manager.close()
        logger.info("Application shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    :returns: Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Chat Agent API",
        version="0.1.0",
        lifespan=lifespan,
        responses={
            500: {"model": ErrorResponse, "description": "Internal server error"},
        },
    )

    # Register routers
    application.include_router(health_router)
    application.include_router(
        sessions_router,
        responses={
            404: {"model": ErrorResponse, "description": "Not found"},
            502: {"model": ErrorResponse, "description": "Model request failed"},
        },
    )

    logger.info("FastAPI application created")

    return application


# Application instance for uvicorn
app = create_app()
