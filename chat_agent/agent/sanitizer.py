"""History sanitisation before a transcript is replayed to the model.

An interrupted model stream can leave tool calls whose arguments were still
arriving. Those parts are stripped from the end of each message. Pending and
completed tool calls are always kept.
"""

import logging

from chat_agent.agent.enums import ToolCallState
from chat_agent.agent.models import Message, ToolInvocationPart

logger = logging.getLogger(__name__)


def _is_streaming(part: object) -> bool:
    return isinstance(part, ToolInvocationPart) and part.state == ToolCallState.INPUT_STREAMING


def sanitize_messages(messages: list[Message]) -> list[Message]:
    """Remove trailing incomplete tool calls from every message.

    Messages left with no parts are dropped. The input list and its messages
    are not modified.

    :param messages: Transcript to sanitise.
    :returns: Sanitised transcript.
    """
    sanitized: list[Message] = []
    stripped = 0

    for message in messages:
        parts = list(message.parts)
        while parts and _is_streaming(parts[-1]):
            parts.pop()
            stripped += 1

        if len(parts) == len(message.parts):
            sanitized.append(message)
            continue

        if not parts:
            logger.warning(f"Dropped message with only incomplete tool calls: id={message.id}")
            continue

        sanitized.append(message.model_copy(update={"parts": parts}))

    if stripped:
        logger.info(f"Stripped {stripped} incomplete tool call(s) from transcript")

    return sanitized
