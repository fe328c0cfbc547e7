"""Chat session endpoints."""

from chat_agent.api.sessions.endpoints import router

__all__ = ["router"]
