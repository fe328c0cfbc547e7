"""Execution table for confirmation-required tools.

Confirm tools are exposed to the model without a handler. Once the user
approves a call, the reconciler looks up the deferred handler here and runs it
with the stored input.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable
from functools import partial
from typing import Any

from pydantic import BaseModel, ValidationError

from chat_agent.agent.exceptions import (
    MissingExecutionError,
    ToolExecutionError,
    ToolTimeoutError,
)
from chat_agent.agent.models import ExecutionDef, ToolResult
from chat_agent.agent.tools.weather import WEATHER_TOOL_NAME, GetWeatherArgs, get_weather_information
from chat_agent.agent.utils.config import DEFAULT_AGENT_CONFIG, AgentConfig

logger = logging.getLogger(__name__)


def _call_handler(
    tool_name: str,
    args_model: type[BaseModel],
    handler: Callable[[Any], Any],
    input_args: dict[str, Any],
    executor: concurrent.futures.Executor,
    timeout_seconds: float,
) -> Any:
    """Validate arguments and run a handler with timeout protection.

    :raises ToolTimeoutError: If execution exceeds the timeout.
    :raises ToolExecutionError: If validation or execution fails.
    """
    try:
        validated_args = args_model.model_validate(input_args)
    except ValidationError as e:
        logger.warning(f"Tool argument validation failed: tool={tool_name}, error={e}")
        raise ToolExecutionError(tool_name, f"Invalid arguments: {e}") from e

    future = executor.submit(handler, validated_args)
    try:
        result = future.result(timeout=timeout_seconds)
        logger.debug(f"Tool executed successfully: tool={tool_name}")
        return result
    except concurrent.futures.TimeoutError:
        future.cancel()
        logger.warning(f"Tool execution timed out: tool={tool_name}, timeout={timeout_seconds}s")
        raise ToolTimeoutError(tool_name, timeout_seconds)
    except Exception as e:
        logger.exception(f"Tool execution failed: tool={tool_name}")
        raise ToolExecutionError(tool_name, str(e)) from e


def run_tool_handler(
    tool_name: str,
    args_model: type[BaseModel],
    handler: Callable[[Any], Any],
    input_args: dict[str, Any],
    executor: concurrent.futures.Executor,
    timeout_seconds: float,
) -> ToolResult:
    """Run a tool handler and convert every failure into a result value.

    :param tool_name: Name of the tool, for logging and messages.
    :param args_model: Model used to validate the input.
    :param handler: Function to run with the validated input.
    :param input_args: Raw input from the transcript.
    :param executor: Executor the handler is submitted to.
    :param timeout_seconds: Maximum seconds to wait for the handler.
    :returns: The handler output, or an error result.
    """
    try:
        output = _call_handler(
            tool_name, args_model, handler, input_args, executor, timeout_seconds
        )
    except ToolTimeoutError as e:
        return ToolResult(
            output=f"Error: {e}. The operation took too long, try again later.",
            is_error=True,
        )
    except ToolExecutionError as e:
        return ToolResult(output=f"Error: {e.error}", is_error=True)

    if isinstance(output, ToolResult):
        return output
    return ToolResult(output=output)


class ExecutionTable:
    """Mapping from confirm-tool name to its deferred execution.

    Every lookup for a name that has no entry is a programming error and
    raises MissingExecutionError. Failures inside an entry are returned as
    error results.
    """

    def __init__(self, config: AgentConfig = DEFAULT_AGENT_CONFIG) -> None:
        """Initialise an empty execution table.

        :param config: Agent configuration for timeouts and worker count.
        """
        self._entries: dict[str, ExecutionDef] = {}
        self._config = config
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=config.max_parallel_executions,
            thread_name_prefix="tool-execution",
        )

    def register(self, entry: ExecutionDef) -> None:
        """Register a deferred execution.

        :param entry: Execution definition to register.
        :raises ValueError: If an entry with the same name already exists.
        """
        if entry.name in self._entries:
            raise ValueError(f"Execution for '{entry.name}' is already registered")
        self._entries[entry.name] = entry
        logger.debug(f"Registered execution: name={entry.name}")

    def names(self) -> list[str]:
        """List the names of all registered executions."""
        return list(self._entries)

    def execute(self, tool_name: str, input_args: dict[str, Any]) -> ToolResult:
        """Run the deferred execution for an approved tool call.

        :param tool_name: Name of the confirm tool.
        :param input_args: Input recorded on the tool call.
        :returns: Result of the execution; failures become error results.
        :raises MissingExecutionError: If no entry exists for the tool.
        """
        entry = self._entries.get(tool_name)
        if entry is None:
            raise MissingExecutionError(tool_name)

        logger.info(f"Executing confirmed tool: tool={tool_name}")
        return run_tool_handler(
            tool_name,
            entry.args_model,
            entry.handler,
            input_args,
            self._executor,
            self._config.tool_timeout_seconds,
        )

    def shutdown(self) -> None:
        """Release the worker threads without waiting for hung handlers."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __contains__(self, tool_name: str) -> bool:
        """Check if an execution is registered."""
        return tool_name in self._entries

    def __len__(self) -> int:
        """Return the number of registered executions."""
        return len(self._entries)


def create_default_executions(config: AgentConfig = DEFAULT_AGENT_CONFIG) -> ExecutionTable:
    """Create an execution table for every built-in confirm tool.

    :param config: Agent configuration.
    :returns: Execution table with all default entries registered.
    """
    executions = ExecutionTable(config)
    executions.register(
        ExecutionDef(
            name=WEATHER_TOOL_NAME,
            args_model=GetWeatherArgs,
            handler=partial(get_weather_information, timeout=config.http_timeout_seconds),
        )
    )
    logger.info(f"Created default execution table with {len(executions)} entries")
    return executions
