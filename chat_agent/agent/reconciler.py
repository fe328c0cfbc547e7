"""Confirmation reconciliation for pending tool calls.

Before each model turn, the transcript is scanned for tool calls that have
complete arguments but no recorded result. Confirmation-required calls are
resolved against the user's decision records: approved calls run through the
execution table, rejected calls receive a fixed declined result, and calls with
no decision yet are left pending. Confirmation state lives entirely in the
transcript, so a pass can be replayed after a restart.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable
from dataclasses import dataclass

from chat_agent.agent.enums import MessageRole, ToolCallState, ToolDecisionType, ToolMode
from chat_agent.agent.exceptions import MissingExecutionError
from chat_agent.agent.executions import ExecutionTable
from chat_agent.agent.models import (
    Message,
    ReconcileResult,
    ToolCall,
    ToolInvocationPart,
    ToolResult,
)
from chat_agent.agent.registry import ToolRegistry
from chat_agent.agent.utils.config import DEFAULT_AGENT_CONFIG, AgentConfig

logger = logging.getLogger(__name__)

DECLINED_RESULT = "User declined execution"

ResultCallback = Callable[[ToolCall], None]


@dataclass
class _Resolution:
    """A pending part and how it will be resolved."""

    part: ToolInvocationPart
    result: ToolResult | None = None
    future: concurrent.futures.Future[ToolResult] | None = None


def _collect_decisions(
    messages: list[Message],
) -> dict[str, list[tuple[int, ToolDecisionType]]]:
    """Index user decision records by tool call ID, in transcript order."""
    decisions: dict[str, list[tuple[int, ToolDecisionType]]] = {}
    for index, message in enumerate(messages):
        if message.role != MessageRole.USER:
            continue
        for record in message.decisions:
            decisions.setdefault(record.tool_call_id, []).append((index, record.decision))
    return decisions


def _find_decision(
    decisions: dict[str, list[tuple[int, ToolDecisionType]]],
    tool_call_id: str,
    after_index: int,
) -> ToolDecisionType | None:
    """Return the first decision recorded after the message holding the call."""
    for index, decision in decisions.get(tool_call_id, []):
        if index > after_index:
            return decision
    return None


def _execute_approved(executions: ExecutionTable, part: ToolInvocationPart) -> ToolResult:
    """Run an approved call, converting a missing entry into an error result."""
    try:
        return executions.execute(part.tool_name, part.input)
    except MissingExecutionError as e:
        logger.error(f"Approved tool has no execution entry: {e}")
        return ToolResult(output=f"Error: {e}", is_error=True)


def _plan_resolution(
    part: ToolInvocationPart,
    message_index: int,
    registry: ToolRegistry,
    executions: ExecutionTable,
    decisions: dict[str, list[tuple[int, ToolDecisionType]]],
    config: AgentConfig,
) -> _Resolution | None:
    """Decide how a pending part is resolved, or None to leave it pending."""
    if part.tool_name in registry:
        mode = registry.mode_of(part.tool_name)
    elif part.tool_name in executions:
        mode = ToolMode.CONFIRM
    else:
        logger.error(f"Pending call for unknown tool: tool={part.tool_name}, id={part.tool_call_id}")
        return _Resolution(
            part=part,
            result=ToolResult(output=f"Error: Unknown tool: {part.tool_name}", is_error=True),
        )

    if mode == ToolMode.AUTO:
        if not config.resolve_stale_auto_calls:
            logger.warning(
                f"Auto tool left unresolved across turns, leaving pending: "
                f"tool={part.tool_name}, id={part.tool_call_id}"
            )
            return None
        logger.warning(
            f"Auto tool left unresolved across turns, resolving with empty result: "
            f"tool={part.tool_name}, id={part.tool_call_id}"
        )
        return _Resolution(part=part, result=ToolResult(output=""))

    decision = _find_decision(decisions, part.tool_call_id, message_index)
    if decision is None:
        logger.debug(f"Awaiting decision: tool={part.tool_name}, id={part.tool_call_id}")
        return None

    if decision == ToolDecisionType.REJECT:
        logger.info(f"User declined tool: tool={part.tool_name}, id={part.tool_call_id}")
        return _Resolution(part=part, result=ToolResult(output=DECLINED_RESULT))

    logger.info(f"User approved tool: tool={part.tool_name}, id={part.tool_call_id}")
    return _Resolution(part=part)


def reconcile_tool_calls(
    messages: list[Message],
    registry: ToolRegistry,
    executions: ExecutionTable,
    config: AgentConfig = DEFAULT_AGENT_CONFIG,
    on_result: ResultCallback | None = None,
) -> ReconcileResult:
    """Resolve pending tool calls against recorded human decisions.

    Calls are processed in transcript order. Approved executions run
    concurrently, but results are written back and reported in transcript
    order. The input messages are not modified.

    :param messages: Sanitised transcript.
    :param registry: Tools available this turn.
    :param executions: Deferred executions for confirm tools.
    :param config: Agent configuration.
    :param on_result: Called with each new result as soon as it is written.
    :returns: Updated transcript and the newly produced results.
    """
    updated = [message.model_copy(deep=True) for message in messages]
    decisions = _collect_decisions(updated)

    resolutions: list[_Resolution] = []
    for index, message in enumerate(updated):
        for part in message.tool_parts:
            if part.state != ToolCallState.INPUT_AVAILABLE:
                continue
            resolution = _plan_resolution(part, index, registry, executions, decisions, config)
            if resolution is not None:
                resolutions.append(resolution)

    if not resolutions:
        return ReconcileResult(messages=updated)

    approved = [r for r in resolutions if r.result is None]
    results: list[ToolCall] = []

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, min(config.max_parallel_executions, len(approved))),
        thread_name_prefix="reconcile",
    ) as pool:
        for resolution in approved:
            resolution.future = pool.submit(_execute_approved, executions, resolution.part)

        for resolution in resolutions:
            if resolution.future is not None:
                resolution.result = resolution.future.result()
            if resolution.result is None:
                continue

            part = resolution.part
            part.resolve(resolution.result)
            record = ToolCall(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                input_args=part.input,
                output=part.output,
                is_error=part.is_error,
            )
            results.append(record)
            if on_result is not None:
                on_result(record)

    logger.info(f"Reconciled {len(results)} tool call(s)")
    return ReconcileResult(messages=updated, results=results)
