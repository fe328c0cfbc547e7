"""Task scheduling for the chat agent."""

from chat_agent.scheduling.exceptions import (
    ScheduleError,
    ScheduleNotFoundError,
    ScheduleValidationError,
    UnknownScheduleTypeError,
)
from chat_agent.scheduling.scheduler import InMemoryScheduler, Scheduler

__all__ = [
    "InMemoryScheduler",
    "ScheduleError",
    "ScheduleNotFoundError",
    "ScheduleValidationError",
    "Scheduler",
    "UnknownScheduleTypeError",
]
