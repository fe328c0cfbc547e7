"""Application settings using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Settings for the chat agent service.

    All settings are loaded from environment variables with the CHAT_AGENT_ prefix.

    :param database_url: SQLAlchemy URL for transcript storage.
    :param aws_region: AWS region for Bedrock.
    :param chat_model: Model alias used for chat turns.
    :param scheduler_poll_seconds: Interval between scheduler polls.
    :param session_idle_seconds: Idle time before a session is evicted.
    :param persist_transcripts: Whether sessions write transcripts to the database.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHAT_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///./chat_agent.db",
        description="SQLAlchemy database URL",
    )
    aws_region: str = Field(default="eu-west-2", description="AWS region for Bedrock")
    chat_model: str = Field(default="sonnet", description="Model alias for chat turns")
    scheduler_poll_seconds: float = Field(
        default=5.0,
        gt=0,
        le=300,
        description="Seconds between scheduler polls",
    )
    session_idle_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds without use before a session without scheduled tasks is closed",
    )
    persist_transcripts: bool = Field(
        default=True,
        description="Persist session transcripts to the database",
    )


@lru_cache
def get_settings() -> AppSettings:
    """Get cached application settings.

    Settings are loaded once and cached for the lifetime of the process.

    :returns: Configured AppSettings instance.
    """
    return AppSettings()
