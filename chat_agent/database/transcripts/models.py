"""SQLAlchemy ORM models for chat transcripts."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from chat_agent.database.core import Base


class ChatSession(Base):
    """ORM model for a chat session transcript.

    The whole transcript is stored as one JSON document so a session can be
    rehydrated after a restart, including calls still awaiting a decision.
    """

    __tablename__ = "chat_sessions"

    id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
    )
    messages_json: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<ChatSession(id={self.id}, messages={len(self.messages_json or [])})>"
