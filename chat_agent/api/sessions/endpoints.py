"""API endpoints for chat sessions."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, status

from chat_agent.agent.exceptions import BedrockClientError
from chat_agent.agent.sessions import SessionManager
from chat_agent.api.dependencies import get_session_manager
from chat_agent.api.sessions.models import (
    ChatRequest,
    ChatResponse,
    MessagesResponse,
    ReplaceMessagesRequest,
    ScheduledTaskResponse,
    SchedulesResponse,
)
from chat_agent.scheduling.exceptions import ScheduleNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post(
    "/{session_id}/chat",
    response_model=ChatResponse,
    summary="Run a chat turn",
)
def chat(
    session_id: str,
    request: ChatRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> ChatResponse:
    """Run one turn of the conversation.

    Decisions on pending tool calls are applied before the model is called.
    When a tool needs approval the turn stops with confirmation_required and
    the pending calls are returned.
    """
    start = time.perf_counter()
    logger.info(
        f"Chat turn: session_id={session_id}, has_text={bool(request.text)}, "
        f"decisions={len(request.decisions)}"
    )

    agent_session = manager.get_or_create(session_id)
    decisions = {d.tool_call_id: d.decision for d in request.decisions}

    try:
        result = agent_session.chat(text=request.text, decisions=decisions)
    except BedrockClientError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Model request failed: {e}",
        ) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Chat turn complete: session_id={session_id}, stop_reason={result.stop_reason}, "
        f"tool_calls={len(result.tool_calls)}, elapsed={elapsed_ms:.0f}ms"
    )

    return ChatResponse(
        response=result.response,
        stop_reason=result.stop_reason,
        steps_taken=result.steps_taken,
        tool_calls=result.tool_calls,
        pending_confirmations=result.pending_confirmations,
    )


@router.get(
    "/{session_id}/messages",
    response_model=MessagesResponse,
    summary="Get transcript",
)
def get_messages(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> MessagesResponse:
    """Get the session transcript."""
    agent_session = manager.get_or_create(session_id)
    return MessagesResponse(messages=agent_session.messages)


@router.put(
    "/{session_id}/messages",
    response_model=MessagesResponse,
    summary="Replace transcript",
)
def replace_messages(
    session_id: str,
    request: ReplaceMessagesRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> MessagesResponse:
    """Replace the session transcript.

    The new transcript is sanitised on the next turn, so it may contain
    incomplete tool calls.
    """
    logger.info(f"Replace transcript: session_id={session_id}, messages={len(request.messages)}")
    agent_session = manager.get_or_create(session_id)
    agent_session.replace_messages(request.messages)
    return MessagesResponse(messages=agent_session.messages)


@router.get(
    "/{session_id}/schedules",
    response_model=SchedulesResponse,
    summary="List scheduled tasks",
)
def list_schedules(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SchedulesResponse:
    """List the session's scheduled tasks ordered by next run."""
    agent_session = manager.get_or_create(session_id)
    tasks = agent_session.scheduler.list_tasks()
    return SchedulesResponse(tasks=[ScheduledTaskResponse.from_task(t) for t in tasks])


@router.delete(
    "/{session_id}/schedules/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel scheduled task",
)
def cancel_schedule(
    session_id: str,
    task_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> None:
    """Cancel a scheduled task."""
    logger.info(f"Cancel scheduled task: session_id={session_id}, task_id={task_id}")

    agent_session = manager.get(session_id)
    if agent_session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )

    try:
        agent_session.scheduler.cancel(task_id)
    except ScheduleNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
