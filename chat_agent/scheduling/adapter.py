"""Translation from schedule requests to scheduler calls.

Every scheduler failure is converted into a readable result here, so the
scheduling tools never raise into the model invocation loop.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from chat_agent.agent.models import ToolResult
from chat_agent.scheduling.exceptions import (
    ScheduleError,
    ScheduleNotFoundError,
    UnknownScheduleTypeError,
)
from chat_agent.scheduling.models import (
    NOTHING_TO_SCHEDULE,
    CronSchedule,
    CronTrigger,
    DateTrigger,
    Delayed,
    NoSchedule,
    NothingToSchedule,
    ScheduledAt,
    ScheduleRequest,
    Trigger,
)
from chat_agent.scheduling.scheduler import Scheduler, calculate_next_cron_trigger

logger = logging.getLogger(__name__)

# Entry point the scheduler invokes when a task fires
EXECUTE_TASK_HANDLER = "execute_task"


def to_trigger(request: ScheduleRequest, now: datetime | None = None) -> Trigger | NothingToSchedule:
    """Convert a schedule request into a scheduler trigger.

    :param request: The tagged schedule request.
    :param now: Reference time for delays and cron. Defaults to UTC now.
    :returns: A trigger, or NOTHING_TO_SCHEDULE for a no-schedule request.
    :raises ScheduleValidationError: If a cron expression is malformed.
    :raises UnknownScheduleTypeError: If the request is outside the closed set.
    """
    now = now or datetime.now(UTC)

    match request:
        case NoSchedule():
            return NOTHING_TO_SCHEDULE
        case ScheduledAt(date=date):
            return DateTrigger(run_at=date)
        case Delayed(delay_in_seconds=delay):
            return DateTrigger(run_at=now + timedelta(seconds=delay))
        case CronSchedule(cron_expression=expression):
            return CronTrigger(
                expression=expression,
                next_run_at=calculate_next_cron_trigger(expression, now),
            )
        case _:
            raise UnknownScheduleTypeError(request)


class ScheduleAdapter:
    """Drives a scheduler on behalf of the scheduling tools."""

    def __init__(
        self,
        scheduler: Scheduler,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialise the adapter.

        :param scheduler: Scheduler collaborator.
        :param clock: Function returning the current time. Defaults to UTC now.
        """
        self.scheduler = scheduler
        self._clock = clock or (lambda: datetime.now(UTC))

    def schedule_task(self, request: ScheduleRequest, description: str) -> ToolResult:
        """Schedule a task that runs the task-execution entry point.

        :param request: When to run the task.
        :param description: Free-text description passed to the handler.
        :returns: Confirmation text, a no-op message, or an error result.
        """
        try:
            trigger = to_trigger(request, now=self._clock())
        except UnknownScheduleTypeError:
            logger.exception("Schedule request has an unknown type")
            raise
        except ScheduleError as e:
            logger.warning(f"Invalid schedule request: {e}")
            return ToolResult(output=f"Error scheduling task: {e}", is_error=True)

        if isinstance(trigger, NothingToSchedule):
            logger.debug("Schedule request has nothing to schedule")
            return ToolResult(output=trigger.message)

        try:
            task_id = self.scheduler.schedule(trigger, EXECUTE_TASK_HANDLER, description)
        except Exception as e:
            logger.exception("Error scheduling task")
            return ToolResult(output=f"Error scheduling task: {e}", is_error=True)

        return ToolResult(
            output=(
                f'Task scheduled for type "{request.type}" : {trigger.describe()} '
                f"(id: {task_id})"
            )
        )

    def list_schedules(self) -> ToolResult:
        """List scheduled tasks.

        :returns: Task summaries, or a message when there are none.
        """
        try:
            tasks = self.scheduler.list_tasks()
        except Exception as e:
            logger.exception("Error listing scheduled tasks")
            return ToolResult(output=f"Error listing scheduled tasks: {e}", is_error=True)

        if not tasks:
            return ToolResult(output="No scheduled tasks found.")
        return ToolResult(output={"tasks": [task.to_summary() for task in tasks]})

    def cancel_schedule(self, task_id: str) -> ToolResult:
        """Cancel a scheduled task.

        :param task_id: ID of the task to cancel.
        :returns: Confirmation text, or a not-found result.
        """
        try:
            self.scheduler.cancel(task_id)
        except ScheduleNotFoundError:
            logger.info(f"Cancel requested for unknown task: id={task_id}")
            return ToolResult(output=f"Task {task_id} not found.", is_error=True)
        except Exception as e:
            logger.exception(f"Error canceling scheduled task: id={task_id}")
            return ToolResult(output=f"Error canceling task {task_id}: {e}", is_error=True)

        return ToolResult(output=f"Task {task_id} has been successfully canceled.")
