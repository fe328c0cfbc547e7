"""Scheduler collaborator used by the schedule adapter.

The in-memory scheduler keeps tasks for the lifetime of the process. Due tasks
are fired by polling run_pending: one-off tasks are removed after firing and
cron tasks are re-armed to their next occurrence.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from croniter import croniter

from chat_agent.scheduling.exceptions import ScheduleNotFoundError, ScheduleValidationError
from chat_agent.scheduling.models import (
    CronTrigger,
    DateTrigger,
    ScheduledTask,
    Trigger,
    TriggerType,
)

logger = logging.getLogger(__name__)

TaskDispatcher = Callable[[ScheduledTask], None]


def calculate_next_cron_trigger(cron_expression: str, after: datetime | None = None) -> datetime:
    """Calculate the next trigger time for a cron expression.

    :param cron_expression: Standard cron expression (5 fields).
    :param after: Calculate next trigger after this time. Defaults to now.
    :returns: Next trigger datetime in UTC.
    :raises ScheduleValidationError: If the expression is malformed.
    """
    if not croniter.is_valid(cron_expression):
        raise ScheduleValidationError(f"Invalid cron expression: {cron_expression!r}")

    if after is None:
        after = datetime.now(UTC)

    cron = croniter(cron_expression, after)
    next_time = cron.get_next(datetime)

    # Ensure timezone awareness
    if next_time.tzinfo is None:
        next_time = next_time.replace(tzinfo=UTC)

    return next_time


class Scheduler(Protocol):
    """Capability the schedule adapter drives.

    Implementations own task storage; callers only hold task IDs.
    """

    def schedule(self, trigger: Trigger, handler_name: str, payload: str) -> str:
        """Create a task and return its ID."""
        ...

    def list_tasks(self) -> list[ScheduledTask]:
        """Return all scheduled tasks."""
        ...

    def cancel(self, task_id: str) -> None:
        """Remove a task.

        :raises ScheduleNotFoundError: If the task does not exist.
        """
        ...


class InMemoryScheduler:
    """Process-local scheduler with polling-based firing."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialise an empty scheduler.

        :param clock: Function returning the current time. Defaults to UTC now.
        """
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tasks: dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()

    def schedule(self, trigger: Trigger, handler_name: str, payload: str) -> str:
        """Create a task for a trigger.

        :param trigger: When the task fires.
        :param handler_name: Entry point invoked when the task fires.
        :param payload: Free-text description passed to the handler.
        :returns: ID of the new task.
        :raises ScheduleValidationError: If a date trigger is not in the future.
        """
        now = self._clock()
        match trigger:
            case DateTrigger(run_at=run_at):
                if run_at <= now:
                    raise ScheduleValidationError(
                        f"Scheduled time {run_at.isoformat()} is not in the future"
                    )
                task = ScheduledTask(
                    trigger_type=TriggerType.DATE,
                    run_at=run_at,
                    handler_name=handler_name,
                    payload=payload,
                )
            case CronTrigger(expression=expression, next_run_at=next_run_at):
                task = ScheduledTask(
                    trigger_type=TriggerType.CRON,
                    run_at=next_run_at,
                    cron_expression=expression,
                    handler_name=handler_name,
                    payload=payload,
                )
            case _:
                raise ScheduleValidationError(f"Unsupported trigger: {trigger!r}")

        with self._lock:
            self._tasks[task.id] = task

        logger.info(
            f"Scheduled task: id={task.id}, type={task.trigger_type}, "
            f"run_at={task.run_at.isoformat()}, handler={handler_name}"
        )
        return task.id

    def get(self, task_id: str) -> ScheduledTask:
        """Get a task by ID.

        :param task_id: Task ID.
        :returns: The task.
        :raises ScheduleNotFoundError: If the task does not exist.
        """
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            raise ScheduleNotFoundError(task_id)
        return task

    def list_tasks(self) -> list[ScheduledTask]:
        """Return all tasks ordered by next fire time."""
        with self._lock:
            tasks = list(self._tasks.values())
        return sorted(tasks, key=lambda t: t.run_at)

    def cancel(self, task_id: str) -> None:
        """Remove a task.

        :param task_id: Task ID.
        :raises ScheduleNotFoundError: If the task does not exist.
        """
        with self._lock:
            if self._tasks.pop(task_id, None) is None:
                raise ScheduleNotFoundError(task_id)
        logger.info(f"Cancelled scheduled task: id={task_id}")

    def run_pending(self, dispatch: TaskDispatcher, now: datetime | None = None) -> int:
        """Fire every task that is due.

        One-off tasks are removed before dispatch, cron tasks are re-armed to
        their next occurrence. Dispatch failures are logged and not retried.

        :param dispatch: Called once per fired task.
        :param now: Reference time. Defaults to the scheduler clock.
        :returns: Number of tasks fired.
        """
        now = now or self._clock()
        fired: list[ScheduledTask] = []

        with self._lock:
            for task in list(self._tasks.values()):
                if task.run_at > now:
                    continue
                fired.append(task)
                if task.is_recurring and task.cron_expression is not None:
                    self._tasks[task.id] = task.model_copy(
                        update={"run_at": calculate_next_cron_trigger(task.cron_expression, now)}
                    )
                else:
                    del self._tasks[task.id]

        for task in fired:
            try:
                dispatch(task)
            except Exception:
                logger.exception(f"Scheduled task dispatch failed: id={task.id}")

        if fired:
            logger.info(f"Fired {len(fired)} scheduled task(s)")
        return len(fired)

    def __len__(self) -> int:
        """Return the number of scheduled tasks."""
        with self._lock:
            return len(self._tasks)
