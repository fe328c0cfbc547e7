"""Scheduling tool configuration for the AI agent.

The scheduling tools run automatically. They are bound to a session's
schedule adapter when the session builds its tool set, so each handler acts
on that session's scheduler only.
"""

import logging

from pydantic import BaseModel, Field

from chat_agent.agent.models import ToolDef, ToolResult
from chat_agent.scheduling.adapter import ScheduleAdapter
from chat_agent.scheduling.models import ScheduleRequest

logger = logging.getLogger(__name__)


class ScheduleTaskArgs(BaseModel):
    """Arguments for scheduling a task."""

    when: ScheduleRequest = Field(
        ...,
        description=(
            "When to run the task: one of no-schedule, scheduled (absolute date), "
            "delayed (delayInSeconds) or cron (cron expression)"
        ),
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="What the task should do when it runs",
    )


class GetScheduledTasksArgs(BaseModel):
    """Arguments for listing scheduled tasks (none)."""


class CancelScheduledTaskArgs(BaseModel):
    """Arguments for cancelling a scheduled task."""

    model_config = {"populate_by_name": True}

    task_id: str = Field(
        ...,
        min_length=1,
        alias="taskId",
        description="The ID of the task to cancel",
    )


def get_schedule_tools(adapter: ScheduleAdapter) -> list[ToolDef]:
    """Get the scheduling tool definitions bound to an adapter.

    :param adapter: Schedule adapter the handlers delegate to.
    :returns: List of ToolDef instances for scheduling operations.
    """

    def _schedule_task_handler(args: ScheduleTaskArgs) -> ToolResult:
        logger.debug(
            f"Scheduling task: type={args.when.type}, description={args.description[:50]!r}"
        )
        return adapter.schedule_task(args.when, args.description)

    def _get_scheduled_tasks_handler(args: GetScheduledTasksArgs) -> ToolResult:
        logger.debug("Listing scheduled tasks")
        return adapter.list_schedules()

    def _cancel_scheduled_task_handler(args: CancelScheduledTaskArgs) -> ToolResult:
        logger.debug(f"Cancelling scheduled task: id={args.task_id}")
        return adapter.cancel_schedule(args.task_id)

    return [
        ToolDef(
            name="scheduleTask",
            description="A tool to schedule a task to be executed at a later time",
            args_model=ScheduleTaskArgs,
            handler=_schedule_task_handler,
        ),
        ToolDef(
            name="getScheduledTasks",
            description="List all tasks that have been scheduled",
            args_model=GetScheduledTasksArgs,
            handler=_get_scheduled_tasks_handler,
        ),
        ToolDef(
            name="cancelScheduledTask",
            description="Cancel a scheduled task using its ID",
            args_model=CancelScheduledTaskArgs,
            handler=_cancel_scheduled_task_handler,
        ),
    ]
