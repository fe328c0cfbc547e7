"""Session management for chat conversations."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from chat_agent.agent.bedrock_client import BedrockClient
from chat_agent.agent.models import Message
from chat_agent.agent.runner import AgentSession, TranscriptStore
from chat_agent.agent.utils.config import DEFAULT_AGENT_CONFIG
from chat_agent.database.connection import get_session
from chat_agent.database.transcripts import load_messages, save_messages
from chat_agent.utils.settings import AppSettings

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], AgentSession]


class DatabaseTranscriptStore:
    """Transcript store backed by the chat_sessions table."""

    def load(self, session_id: str) -> list[Message]:
        """Load a stored transcript, or an empty list."""
        with get_session() as db_session:
            return load_messages(db_session, session_id)

    def save(self, session_id: str, messages: list[Message]) -> None:
        """Replace the stored transcript."""
        with get_session() as db_session:
            save_messages(db_session, session_id, messages)


def create_session_factory(settings: AppSettings) -> SessionFactory:
    """Build a factory that creates sessions from application settings.

    The Bedrock client is shared across sessions.

    :param settings: Application settings.
    :returns: Function creating a session for an ID.
    """
    config = replace(DEFAULT_AGENT_CONFIG, chat_model=settings.chat_model)
    client = BedrockClient(region_name=settings.aws_region)
    store: TranscriptStore | None = (
        DatabaseTranscriptStore() if settings.persist_transcripts else None
    )

    def _factory(session_id: str) -> AgentSession:
        return AgentSession(session_id, client=client, store=store, config=config)

    return _factory


class SessionManager:
    """Keeps one live AgentSession per conversation ID.

    Sessions idle for longer than the idle timeout are closed by evict_idle,
    unless they still hold scheduled tasks. Transcripts are reloaded from the
    store when an evicted session is used again.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        idle_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise the session manager.

        :param session_factory: Function creating a session for an ID.
        :param idle_timeout_seconds: Seconds without use before a session may be
            evicted. None keeps sessions for the lifetime of the process.
        :param clock: Monotonic clock used to track last use.
        """
        self._session_factory = session_factory
        self._idle_timeout = idle_timeout_seconds
        self._clock = clock
        self._sessions: dict[str, AgentSession] = {}
        self._last_used: dict[str, float] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> AgentSession | None:
        """Get a live session by ID, if one exists."""
        with self._lock:
            agent_session = self._sessions.get(session_id)
            if agent_session is not None:
                self._last_used[session_id] = self._clock()
            return agent_session

    def get_or_create(self, session_id: str) -> AgentSession:
        """Get a live session or create it.

        :param session_id: Conversation ID.
        :returns: The session.
        """
        with self._lock:
            agent_session = self._sessions.get(session_id)
            if agent_session is None:
                agent_session = self._session_factory(session_id)
                self._sessions[session_id] = agent_session
                logger.info(f"Created agent session: id={session_id}")
            self._last_used[session_id] = self._clock()
            return agent_session

    def run_due_tasks(self, now: datetime | None = None) -> int:
        """Fire due scheduled tasks across all live sessions.

        :param now: Reference time. Defaults to each scheduler's clock.
        :returns: Total number of tasks fired.
        """
        with self._lock:
            sessions = list(self._sessions.values())

        fired = 0
        for agent_session in sessions:
            fired += agent_session.run_due_tasks(now)
        return fired

    def evict_idle(self) -> int:
        """Close sessions idle past the timeout that have no scheduled tasks.

        :returns: Number of sessions evicted.
        """
        if self._idle_timeout is None:
            return 0

        cutoff = self._clock() - self._idle_timeout
        with self._lock:
            idle_ids = [
                session_id
                for session_id, agent_session in self._sessions.items()
                if self._last_used.get(session_id, 0.0) < cutoff
                and len(agent_session.scheduler) == 0
            ]
            evicted = [self._sessions.pop(session_id) for session_id in idle_ids]
            for session_id in idle_ids:
                self._last_used.pop(session_id, None)

        for agent_session in evicted:
            agent_session.close()
        if evicted:
            logger.info(f"Evicted {len(evicted)} idle session(s)")
        return len(evicted)

    def close(self) -> None:
        """Close every live session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._last_used.clear()
        for agent_session in sessions:
            agent_session.close()

    def __len__(self) -> int:
        """Return the number of live sessions."""
        with self._lock:
            return len(self._sessions)


class SchedulePoller:
    """Background thread that fires due scheduled tasks and evicts idle sessions."""

    def __init__(self, manager: SessionManager, interval_seconds: float) -> None:
        """Initialise the poller.

        :param manager: Session manager whose schedulers are polled.
        :param interval_seconds: Seconds between polls.
        """
        self._manager = manager
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start polling in a daemon thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._poll_loop,
            name="schedule-poller",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Schedule poller started: interval={self._interval}s")

    def stop(self, timeout: float | None = None) -> None:
        """Signal the poller to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Schedule poller stopped")

    def poll_once(self) -> int:
        """Run one poll, logging instead of raising on failure."""
        try:
            fired = self._manager.run_due_tasks()
            self._manager.evict_idle()
            return fired
        except Exception:
            logger.exception("Schedule poll failed")
            return 0

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.poll_once()
