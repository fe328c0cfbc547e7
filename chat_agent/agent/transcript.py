"""Conversion between the chat transcript and Bedrock Converse messages.

The transcript stores each tool call and its result on one part. Bedrock
expects the call in an assistant message and the result in the following user
message, so assistant messages are split on the way out. Calls without a
result are never sent.
"""

from __future__ import annotations

import logging
from typing import Any

from chat_agent.agent.enums import MessageRole, ToolCallState, ToolDecisionType
from chat_agent.agent.models import (
    Message,
    MessagePart,
    TextPart,
    ToolDecisionPart,
    ToolInvocationPart,
)

logger = logging.getLogger(__name__)


def user_message(
    text: str | None = None,
    decisions: dict[str, ToolDecisionType] | None = None,
) -> Message:
    """Build a user message from text and decision records.

    :param text: Optional message text.
    :param decisions: Mapping of tool call ID to decision.
    :returns: New user message.
    """
    parts: list[MessagePart] = [
        ToolDecisionPart(tool_call_id=tool_call_id, decision=decision)
        for tool_call_id, decision in (decisions or {}).items()
    ]
    if text:
        parts.append(TextPart(text=text))
    return Message(role=MessageRole.USER, parts=parts)


def parts_from_content(content: list[dict[str, Any]]) -> list[MessagePart]:
    """Convert Bedrock assistant content blocks into transcript parts.

    Tool calls arrive with complete input, so they start as input-available.

    :param content: Content blocks from a Converse response message.
    :returns: Transcript parts in block order.
    """
    parts: list[MessagePart] = []
    for block in content:
        if "text" in block:
            parts.append(TextPart(text=block["text"]))
        elif "toolUse" in block:
            tool_use = block["toolUse"]
            parts.append(
                ToolInvocationPart(
                    tool_call_id=tool_use.get("toolUseId", ""),
                    tool_name=tool_use.get("name", ""),
                    input=tool_use.get("input") or {},
                )
            )
    return parts


def tool_result_content(output: Any) -> list[dict[str, Any]]:
    """Format a recorded tool output as Bedrock tool result content.

    :param output: Plain text or JSON-compatible output.
    :returns: Content blocks for a toolResult.
    """
    if output is None or output == "":
        return [{"json": {}}]
    if isinstance(output, dict):
        return [{"json": output}]
    if isinstance(output, list):
        return [{"json": {"items": output}}]
    return [{"text": str(output)}]


def _split_steps(parts: list[MessagePart]) -> list[list[MessagePart]]:
    """Split assistant parts into steps, starting a new step at text after a tool call."""
    steps: list[list[MessagePart]] = [[]]
    for part in parts:
        current = steps[-1]
        if isinstance(part, TextPart) and any(isinstance(p, ToolInvocationPart) for p in current):
            steps.append([part])
        else:
            current.append(part)
    return steps


def _assistant_step_messages(step: list[MessagePart]) -> list[dict[str, Any]]:
    assistant_content: list[dict[str, Any]] = []
    result_content: list[dict[str, Any]] = []

    for part in step:
        if isinstance(part, TextPart):
            if part.text:
                assistant_content.append({"text": part.text})
        elif isinstance(part, ToolInvocationPart) and part.state == ToolCallState.OUTPUT_AVAILABLE:
            assistant_content.append(
                {
                    "toolUse": {
                        "toolUseId": part.tool_call_id,
                        "name": part.tool_name,
                        "input": part.input,
                    }
                }
            )
            result_content.append(
                {
                    "toolResult": {
                        "toolUseId": part.tool_call_id,
                        "content": tool_result_content(part.output),
                        "status": "error" if part.is_error else "success",
                    }
                }
            )

    converted: list[dict[str, Any]] = []
    if assistant_content:
        converted.append({"role": "assistant", "content": assistant_content})
    if result_content:
        converted.append({"role": "user", "content": result_content})
    return converted


def to_bedrock_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert a transcript to the Bedrock Converse message format.

    Pending calls, decision records and system messages are left out.
    Consecutive messages with the same role are merged and leading assistant
    messages dropped, since Converse requires alternating roles starting with
    the user.

    :param messages: Sanitised and reconciled transcript.
    :returns: Converse messages.
    """
    converted: list[dict[str, Any]] = []

    for message in messages:
        match message.role:
            case MessageRole.USER:
                content = [
                    {"text": part.text}
                    for part in message.parts
                    if isinstance(part, TextPart) and part.text
                ]
                if content:
                    converted.append({"role": "user", "content": content})
            case MessageRole.ASSISTANT:
                for step in _split_steps(list(message.parts)):
                    converted.extend(_assistant_step_messages(step))
            case _:
                continue

    merged: list[dict[str, Any]] = []
    for entry in converted:
        if not merged and entry["role"] == "assistant":
            logger.debug("Dropping leading assistant message")
            continue
        if merged and merged[-1]["role"] == entry["role"]:
            merged[-1]["content"].extend(entry["content"])
        else:
            merged.append({"role": entry["role"], "content": list(entry["content"])})

    return merged
