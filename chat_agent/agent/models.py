"""Pydantic models for the AI agent module."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from chat_agent.agent.enums import (
    MessageRole,
    StopReason,
    ToolCallState,
    ToolDecisionType,
    ToolMode,
)


class ToolDef(BaseModel):
    """Definition of a tool that can be invoked by the AI agent.

    A tool is auto-executing when it carries a handler, and requires human
    confirmation otherwise. The mode is derived and never stored.

    :param name: Unique identifier for the tool.
    :param description: LLM-facing description of what the tool does.
    :param args_model: Pydantic model class defining the tool's arguments.
    :param handler: Function that executes the tool inline, if any.
    """

    name: str = Field(..., min_length=1, max_length=64)
    description: str = Field(..., min_length=1, max_length=1024)
    args_model: type[BaseModel]
    handler: Callable[[Any], Any] | None = None

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def mode(self) -> ToolMode:
        """Classify the tool by presence of a handler."""
        return ToolMode.AUTO if self.handler is not None else ToolMode.CONFIRM

    def to_json_schema(self) -> dict[str, Any]:
        """Generate JSON schema for the tool's arguments.

        :returns: JSON schema dictionary compatible with Bedrock Converse.
        """
        schema = self.args_model.model_json_schema()
        # Remove schema metadata not needed by Bedrock
        schema.pop("title", None)
        return schema

    def to_bedrock_tool_spec(self) -> dict[str, Any]:
        """Generate tool specification for AWS Bedrock Converse API.

        :returns: Tool specification dictionary for Bedrock toolConfig.
        """
        return {
            "toolSpec": {
                "name": self.name,
                "description": self.description,
                "inputSchema": {"json": self.to_json_schema()},
            }
        }


class ExecutionDef(BaseModel):
    """Deferred execution for a confirmation-required tool.

    :param name: Name of the confirm tool this entry executes.
    :param args_model: Pydantic model used to validate the stored input.
    :param handler: Function run once the user approves the call.
    """

    name: str = Field(..., min_length=1, max_length=64)
    args_model: type[BaseModel]
    handler: Callable[[Any], Any]

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class ToolResult(BaseModel):
    """Outcome of a tool execution, always returned rather than raised.

    :param output: Model-visible result (plain text or JSON-compatible data).
    :param is_error: Whether the output describes a failure.
    """

    output: Any = ""
    is_error: bool = False

    model_config = {"frozen": True}


class TextPart(BaseModel):
    """Plain text content of a message."""

    type: Literal["text"] = "text"
    text: str


class ToolInvocationPart(BaseModel):
    """A single tool call requested by the model.

    :param tool_call_id: Identifier unique within the transcript.
    :param tool_name: Name of the requested tool.
    :param input: Arguments supplied by the model.
    :param state: Lifecycle state of the call.
    :param output: Recorded result once the state is output-available.
    :param is_error: Whether the recorded result is a failure.
    """

    type: Literal["tool-invocation"] = "tool-invocation"
    tool_call_id: str = Field(..., min_length=1)
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)
    state: ToolCallState = ToolCallState.INPUT_AVAILABLE
    output: Any = None
    is_error: bool = False

    @property
    def is_resolved(self) -> bool:
        """Whether a result has been recorded for this call."""
        return self.state == ToolCallState.OUTPUT_AVAILABLE

    def resolve(self, result: ToolResult) -> None:
        """Record a result and move the part to output-available.

        :param result: The result to record.
        :raises ValueError: If the part is still streaming or already resolved.
        """
        if self.state != ToolCallState.INPUT_AVAILABLE:
            raise ValueError(
                f"Cannot resolve tool call {self.tool_call_id} in state {self.state}"
            )
        self.output = result.output
        self.is_error = result.is_error
        self.state = ToolCallState.OUTPUT_AVAILABLE


class ToolDecisionPart(BaseModel):
    """A human approval or rejection of a pending tool call."""

    type: Literal["tool-decision"] = "tool-decision"
    tool_call_id: str = Field(..., min_length=1)
    decision: ToolDecisionType


MessagePart = Annotated[
    TextPart | ToolInvocationPart | ToolDecisionPart,
    Field(discriminator="type"),
]


class Message(BaseModel):
    """A unit of conversation history.

    :param id: Message identifier.
    :param role: Who produced the message.
    :param parts: Ordered content parts.
    :param created_at: When the message was created.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: MessageRole
    parts: list[MessagePart] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def tool_parts(self) -> list[ToolInvocationPart]:
        """Tool invocation parts in order."""
        return [part for part in self.parts if isinstance(part, ToolInvocationPart)]

    @property
    def decisions(self) -> list[ToolDecisionPart]:
        """Decision records in order."""
        return [part for part in self.parts if isinstance(part, ToolDecisionPart)]

    @property
    def text(self) -> str:
        """Concatenated text content."""
        return "\n".join(part.text for part in self.parts if isinstance(part, TextPart))


class ToolCall(BaseModel):
    """Record of a single tool result produced during a turn.

    :param tool_call_id: Identifier of the resolved call.
    :param tool_name: Name of the tool called.
    :param input_args: Input arguments passed to the tool.
    :param output: Output from the tool execution.
    :param is_error: Whether the tool execution resulted in an error.
    """

    tool_call_id: str
    tool_name: str
    input_args: dict[str, Any]
    output: Any
    is_error: bool = False


class PendingToolAction(BaseModel):
    """A tool call waiting for a human decision.

    :param tool_call_id: ID of the tool call from the LLM.
    :param tool_name: Name of the tool.
    :param tool_description: Description of the tool.
    :param input_args: Arguments that would be passed to the tool.
    :param action_summary: Human-readable summary of what the tool would do.
    """

    tool_call_id: str
    tool_name: str
    tool_description: str
    input_args: dict[str, Any]
    action_summary: str


class AgentRunResult(BaseModel):
    """Result of an agent turn.

    :param response: Final text response from the agent.
    :param tool_calls: Tool results produced during the turn, in order.
    :param steps_taken: Number of model calls made.
    :param stop_reason: Reason the turn stopped.
    :param pending_confirmations: Calls still awaiting a decision.
    """

    response: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    steps_taken: int = 0
    stop_reason: StopReason = StopReason.END_TURN
    pending_confirmations: list[PendingToolAction] = Field(default_factory=list)


@dataclass
class ReconcileResult:
    """Output of a reconciliation pass.

    :param messages: Updated transcript.
    :param results: Newly produced results in transcript order.
    """

    messages: list[Message]
    results: list[ToolCall] = field(default_factory=list)
