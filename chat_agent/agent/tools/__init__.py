"""Tool definitions for the AI agent."""

from chat_agent.agent.models import ToolDef
from chat_agent.agent.tools.local_time import LOCAL_TIME_TOOL
from chat_agent.agent.tools.schedules import get_schedule_tools
from chat_agent.agent.tools.weather import WEATHER_TOOL
from chat_agent.scheduling.adapter import ScheduleAdapter


def get_builtin_tools(adapter: ScheduleAdapter) -> list[ToolDef]:
    """Get every built-in tool definition.

    :param adapter: Schedule adapter the scheduling tools are bound to.
    :returns: Built-in tools in registration order.
    """
    return [WEATHER_TOOL, LOCAL_TIME_TOOL, *get_schedule_tools(adapter)]


__all__ = ["LOCAL_TIME_TOOL", "WEATHER_TOOL", "get_builtin_tools", "get_schedule_tools"]
