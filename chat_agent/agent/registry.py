"""Tool registry for the AI agent module."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from chat_agent.agent.enums import ToolMode
from chat_agent.agent.exceptions import (
    DuplicateToolError,
    ExecutionTableMismatchError,
    ToolNotFoundError,
)
from chat_agent.agent.models import ToolDef

if TYPE_CHECKING:
    from chat_agent.agent.executions import ExecutionTable

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Central registry for all available tools.

    Manages tool registration, lookup, and classification. Each tool must have
    a unique name when registered directly. Registries composed from several
    sources resolve name collisions with a last-source-wins policy.
    """

    def __init__(self) -> None:
        """Initialise an empty tool registry."""
        self._tools: dict[str, ToolDef] = {}

    @classmethod
    def compose(cls, *sources: Iterable[ToolDef]) -> ToolRegistry:
        """Build a single flat registry from ordered tool sources.

        Sources are applied in order. When two sources define a tool with the
        same name, the tool from the later source replaces the earlier one.

        :param sources: Ordered iterables of tool definitions.
        :returns: A new registry containing the union of all sources.
        """
        registry = cls()
        for source in sources:
            for tool in source:
                if tool.name in registry._tools:
                    logger.warning(f"Tool name collision, later source wins: name={tool.name}")
                registry._tools[tool.name] = tool
        logger.debug(f"Composed registry with {len(registry)} tools")
        return registry

    def register(self, tool: ToolDef) -> None:
        """Register a tool in the registry.

        :param tool: Tool definition to register.
        :raises DuplicateToolError: If a tool with the same name already exists.
        """
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)

        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: name={tool.name}, mode={tool.mode}")

    def get(self, name: str) -> ToolDef:
        """Retrieve a tool by name.

        :param name: Name of the tool to retrieve.
        :returns: The tool definition.
        :raises ToolNotFoundError: If the tool is not found.
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def mode_of(self, name: str) -> ToolMode:
        """Classify a tool as auto or confirm.

        :param name: Name of the tool.
        :returns: The tool's mode.
        :raises ToolNotFoundError: If the tool is not found.
        """
        return self.get(name).mode

    def list_all(self) -> list[ToolDef]:
        """List all registered tools.

        :returns: List of all tool definitions.
        """
        return list(self._tools.values())

    def filter_by_mode(self, mode: ToolMode) -> list[ToolDef]:
        """Filter tools by execution mode.

        :param mode: Mode to filter by.
        :returns: List of matching tool definitions.
        """
        return [tool for tool in self._tools.values() if tool.mode == mode]

    def to_bedrock_tool_config(self) -> dict[str, Any]:
        """Generate Bedrock toolConfig for every registered tool.

        :returns: Bedrock-compatible toolConfig dictionary.
        """
        return {"tools": [tool.to_bedrock_tool_spec() for tool in self._tools.values()]}

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


def validate_execution_table(registry: ToolRegistry, executions: ExecutionTable) -> None:
    """Check that confirm tools and execution entries match one-to-one.

    Every confirm tool must have an execution entry and every execution entry
    must belong to a registered confirm tool.

    :param registry: Registry to validate.
    :param executions: Execution table to validate.
    :raises ExecutionTableMismatchError: If either direction has a gap.
    """
    confirm_names = {tool.name for tool in registry.filter_by_mode(ToolMode.CONFIRM)}
    execution_names = set(executions.names())

    missing = sorted(confirm_names - execution_names)
    orphaned = sorted(execution_names - confirm_names)
    if missing or orphaned:
        raise ExecutionTableMismatchError(missing=missing, orphaned=orphaned)

    logger.debug(f"Execution table validated: confirm_tools={sorted(confirm_names)}")
