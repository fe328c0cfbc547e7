"""Shared dependencies for API endpoints."""

import logging

from fastapi import HTTPException, Request, status

from chat_agent.agent.sessions import SessionManager

logger = logging.getLogger(__name__)


def get_session_manager(request: Request) -> SessionManager:
    """Get the session manager created at application startup.

    :param request: Incoming request.
    :returns: The application's session manager.
    :raises HTTPException: If the application has not finished starting.
    """
    manager: SessionManager | None = getattr(request.app.state, "session_manager", None)
    if manager is None:
        logger.error("Session manager requested before application startup")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session manager not initialised",
        )
    return manager
