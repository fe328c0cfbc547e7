"""Models for schedule requests, triggers and scheduled tasks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class TriggerType(StrEnum):
    """Kind of trigger held by a scheduled task."""

    DATE = "date"
    CRON = "cron"


def _ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class NoSchedule(BaseModel):
    """Sentinel request meaning there is nothing to schedule."""

    type: Literal["no-schedule"] = "no-schedule"


class ScheduledAt(BaseModel):
    """Run once at an absolute date."""

    type: Literal["scheduled"] = "scheduled"
    date: datetime = Field(
        ...,
        description="When to run the task (ISO 8601, e.g. '2025-01-15T09:00:00Z')",
    )

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: datetime) -> datetime:
        """Normalise the date to a timezone-aware value."""
        return _ensure_aware(v)


class Delayed(BaseModel):
    """Run once after a delay from now."""

    model_config = {"populate_by_name": True}

    type: Literal["delayed"] = "delayed"
    delay_in_seconds: int = Field(
        ...,
        gt=0,
        alias="delayInSeconds",
        description="Number of seconds to wait before running the task",
    )


class CronSchedule(BaseModel):
    """Run repeatedly according to a cron expression."""

    model_config = {"populate_by_name": True}

    type: Literal["cron"] = "cron"
    cron_expression: str = Field(
        ...,
        min_length=1,
        alias="cron",
        validation_alias=AliasChoices("cron", "cronExpression", "cron_expression"),
        description="Standard 5-field cron expression, e.g. '0 9 * * 1-5'",
    )


ScheduleRequest = Annotated[
    NoSchedule | ScheduledAt | Delayed | CronSchedule,
    Field(discriminator="type"),
]


@dataclass(frozen=True)
class DateTrigger:
    """Fire once at an absolute point in time."""

    run_at: datetime

    def describe(self) -> str:
        """Human-readable form of the trigger."""
        return self.run_at.isoformat()


@dataclass(frozen=True)
class CronTrigger:
    """Fire on every occurrence of a cron expression."""

    expression: str
    next_run_at: datetime

    def describe(self) -> str:
        """Human-readable form of the trigger."""
        return self.expression


Trigger = DateTrigger | CronTrigger


@dataclass(frozen=True)
class NothingToSchedule:
    """Result of converting a no-schedule request. A valid no-op, not an error."""

    message: str = "Not a valid schedule input"


NOTHING_TO_SCHEDULE = NothingToSchedule()


class ScheduledTask(BaseModel):
    """A task held by the scheduler.

    :param id: Identifier assigned by the scheduler.
    :param trigger_type: Whether the task fires once or on a cron schedule.
    :param run_at: Next time the task fires.
    :param cron_expression: Cron expression for recurring tasks.
    :param handler_name: Entry point invoked when the task fires.
    :param payload: Free-text description passed to the handler.
    :param created_at: When the task was scheduled.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    trigger_type: TriggerType
    run_at: datetime
    cron_expression: str | None = None
    handler_name: str
    payload: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_recurring(self) -> bool:
        """Whether the task re-arms after firing."""
        return self.trigger_type == TriggerType.CRON

    def to_summary(self) -> dict[str, Any]:
        """Essential fields for LLM context."""
        return {
            "id": self.id,
            "type": str(self.trigger_type),
            "next_run_at": self.run_at.isoformat(),
            "cron": self.cron_expression,
            "description": self.payload,
        }
