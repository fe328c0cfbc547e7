"""Pydantic models for chat session endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from chat_agent.agent.enums import StopReason, ToolDecisionType
from chat_agent.agent.models import Message, PendingToolAction, ToolCall
from chat_agent.scheduling.models import ScheduledTask, TriggerType


class DecisionRequest(BaseModel):
    """A decision on a pending tool call."""

    tool_call_id: str = Field(..., min_length=1, description="ID of the pending tool call")
    decision: ToolDecisionType = Field(..., description="approve or reject")


class ChatRequest(BaseModel):
    """Request model for running a chat turn."""

    text: str | None = Field(None, max_length=10000, description="New user message")
    decisions: list[DecisionRequest] = Field(
        default_factory=list,
        description="Decisions on pending tool calls",
    )

    @model_validator(mode="after")
    def validate_not_empty(self) -> "ChatRequest":
        """Require a message or at least one decision."""
        if not self.text and not self.decisions:
            raise ValueError("Either text or decisions must be provided")
        return self


class ChatResponse(BaseModel):
    """Response model for a chat turn."""

    response: str = Field(..., description="Final assistant text")
    stop_reason: StopReason = Field(..., description="Why the turn stopped")
    steps_taken: int = Field(..., description="Number of model calls made")
    tool_calls: list[ToolCall] = Field(..., description="Tool results produced this turn")
    pending_confirmations: list[PendingToolAction] = Field(
        ...,
        description="Tool calls awaiting a decision",
    )


class MessagesResponse(BaseModel):
    """Response model for a session transcript."""

    messages: list[Message] = Field(..., description="Transcript in order")


class ReplaceMessagesRequest(BaseModel):
    """Request model for replacing a session transcript."""

    messages: list[Message] = Field(..., description="New transcript")


class ScheduledTaskResponse(BaseModel):
    """Response model for a scheduled task."""

    id: str = Field(..., description="Task ID")
    trigger_type: TriggerType = Field(..., description="date or cron")
    run_at: datetime = Field(..., description="Next fire time")
    cron_expression: str | None = Field(None, description="Cron expression for recurring tasks")
    description: str = Field(..., description="Task description")
    created_at: datetime = Field(..., description="When the task was scheduled")

    @classmethod
    def from_task(cls, task: ScheduledTask) -> "ScheduledTaskResponse":
        """Build a response from a scheduled task."""
        return cls(
            id=task.id,
            trigger_type=task.trigger_type,
            run_at=task.run_at,
            cron_expression=task.cron_expression,
            description=task.payload,
            created_at=task.created_at,
        )


class SchedulesResponse(BaseModel):
    """Response model for listing scheduled tasks."""

    tasks: list[ScheduledTaskResponse] = Field(..., description="Tasks ordered by next run")
