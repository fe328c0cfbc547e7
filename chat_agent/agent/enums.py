"""Enumerations for the AI agent module."""

from enum import StrEnum


class ToolMode(StrEnum):
    """Execution mode for a tool.

    Auto tools carry a handler and run inline during model invocation.
    Confirm tools have no handler and wait for a recorded human decision.
    """

    AUTO = "auto"
    CONFIRM = "confirm"


class MessageRole(StrEnum):
    """Role of a message in the transcript."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ToolCallState(StrEnum):
    """Lifecycle state of a tool invocation part.

    INPUT_STREAMING: Arguments are still arriving; never executed or replayed.
    INPUT_AVAILABLE: Arguments are complete and no result is recorded yet.
    OUTPUT_AVAILABLE: A result has been recorded. This state is terminal.
    """

    INPUT_STREAMING = "input-streaming"
    INPUT_AVAILABLE = "input-available"
    OUTPUT_AVAILABLE = "output-available"


class ToolDecisionType(StrEnum):
    """Human decision for a confirmation-required tool call."""

    APPROVE = "approve"
    REJECT = "reject"


class StopReason(StrEnum):
    """Reason an agent turn stopped."""

    END_TURN = "end_turn"
    CONFIRMATION_REQUIRED = "confirmation_required"
    MAX_STEPS = "max_steps"
    MAX_TOKENS = "max_tokens"
    ABORTED = "aborted"
    UNKNOWN = "unknown"
