"""Database operations for chat transcripts."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from chat_agent.agent.models import Message
from chat_agent.database.transcripts.models import ChatSession

logger = logging.getLogger(__name__)

_MESSAGES_ADAPTER = TypeAdapter(list[Message])


def get_or_create_chat_session(session: Session, session_id: str) -> ChatSession:
    """Get a chat session by ID, creating an empty one if it does not exist.

    :param session: Database session.
    :param session_id: Chat session ID.
    :returns: The existing or newly created chat session.
    """
    chat_session = session.get(ChatSession, session_id)
    if chat_session is not None:
        return chat_session

    chat_session = ChatSession(id=session_id, messages_json=[])
    session.add(chat_session)
    session.flush()
    logger.info(f"Created chat session: id={session_id}")
    return chat_session


def load_messages(session: Session, session_id: str) -> list[Message]:
    """Load the stored transcript for a chat session.

    :param session: Database session.
    :param session_id: Chat session ID.
    :returns: Stored messages, or an empty list if the session is unknown.
    """
    chat_session = session.get(ChatSession, session_id)
    if chat_session is None:
        return []
    return _MESSAGES_ADAPTER.validate_python(chat_session.messages_json or [])


def save_messages(session: Session, session_id: str, messages: list[Message]) -> ChatSession:
    """Replace the stored transcript for a chat session.

    :param session: Database session.
    :param session_id: Chat session ID.
    :param messages: Full transcript to store.
    :returns: The updated chat session.
    """
    chat_session = get_or_create_chat_session(session, session_id)
    chat_session.messages_json = _MESSAGES_ADAPTER.dump_python(messages, mode="json")
    chat_session.updated_at = datetime.now(UTC)
    session.flush()
    logger.debug(f"Saved transcript: session_id={session_id}, messages={len(messages)}")
    return chat_session
