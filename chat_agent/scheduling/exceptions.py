"""Custom exceptions for task scheduling."""


class ScheduleError(Exception):
    """Base exception for scheduling errors."""


class ScheduleValidationError(ScheduleError):
    """Raised when a schedule request or trigger is not valid."""


class ScheduleNotFoundError(ScheduleError):
    """Raised when a scheduled task does not exist."""

    def __init__(self, task_id: str) -> None:
        """Initialise ScheduleNotFoundError.

        :param task_id: ID of the missing task.
        """
        self.task_id = task_id
        super().__init__(f"Scheduled task '{task_id}' not found")


class UnknownScheduleTypeError(ScheduleError):
    """Raised for a schedule request outside the closed set of types."""

    def __init__(self, schedule_type: object) -> None:
        """Initialise UnknownScheduleTypeError.

        :param schedule_type: The unrecognised request or type tag.
        """
        self.schedule_type = schedule_type
        super().__init__(f"Unknown schedule type: {schedule_type!r}")
