"""Database models and operations for chat transcripts."""

from chat_agent.database.transcripts.models import ChatSession
from chat_agent.database.transcripts.operations import (
    get_or_create_chat_session,
    load_messages,
    save_messages,
)

__all__ = [
    # Models
    "ChatSession",
    # Operations
    "get_or_create_chat_session",
    "load_messages",
    "save_messages",
]
