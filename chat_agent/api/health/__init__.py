"""Health check endpoints."""

from chat_agent.api.health.endpoints import router

__all__ = ["router"]
