"""Recurring template domain models.

A template stores its schedule in three flat columns (``recurring_pattern``,
``day_of_week``, ``day_of_month``). In code the schedule is a closed set of
rule types, one per pattern, each carrying only the fields it needs:

    Daily()                     every calendar day
    Weekly(day_of_week=1)       every Monday (0=Sunday .. 6=Saturday)
    Monthly(day_of_month=15)    the 15th of every month (1..28)
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from src.domain.task import RecurringPattern, TaskCategory, TaskPriority


class Daily(BaseModel, frozen=True):
    """Every calendar day."""

    kind: Literal[RecurringPattern.DAILY] = RecurringPattern.DAILY


class Weekly(BaseModel, frozen=True):
    """One fixed weekday, 0=Sunday through 6=Saturday."""

    kind: Literal[RecurringPattern.WEEKLY] = RecurringPattern.WEEKLY
    day_of_week: int = Field(..., ge=0, le=6)


class Monthly(BaseModel, frozen=True):
    """One fixed day of the month, capped at 28 so every month has it."""

    kind: Literal[RecurringPattern.MONTHLY] = RecurringPattern.MONTHLY
    day_of_month: int = Field(..., ge=1, le=28)


RecurrenceRule = Annotated[Daily | Weekly | Monthly, Field(discriminator="kind")]


class RecurringTemplate(BaseModel):
    """Recurring template data transfer object."""

    id: str = Field(..., description="Unique template ID from database")
    created: datetime = Field(..., description="Creation timestamp")
    updated: datetime = Field(..., description="Last update timestamp")
    user_id: str = Field(..., description="Owner user ID")
    title: str = Field(..., description="Title copied onto every generated task")
    category: TaskCategory = Field(default=TaskCategory.PERSONAL, description="Category copied onto tasks")
    notes: str | None = Field(default=None, description="Notes copied onto tasks")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Priority copied onto tasks")
    recurring_pattern: RecurringPattern = Field(..., description="daily, weekly or monthly")
    day_of_week: int | None = Field(default=None, description="0-6, weekly templates only")
    day_of_month: int | None = Field(default=None, description="1-28, monthly templates only")
    active: bool = Field(default=True, description="Paused templates are not materialized")
    last_generated_at: datetime | None = Field(
        default=None,
        description="When the last task was generated; guards against double generation in one day",
    )

    @property
    def rule(self) -> Daily | Weekly | Monthly:
        """The schedule as a typed rule."""
        match self.recurring_pattern:
            case RecurringPattern.DAILY:
                return Daily()
            case RecurringPattern.WEEKLY:
                return Weekly(day_of_week=self.day_of_week)
            case RecurringPattern.MONTHLY:
                return Monthly(day_of_month=self.day_of_month)


def rule_to_fields(rule: Daily | Weekly | Monthly) -> dict[str, object]:
    """Flatten a rule into the template's storage columns."""
    match rule:
        case Daily():
            return {"recurring_pattern": RecurringPattern.DAILY, "day_of_week": None, "day_of_month": None}
        case Weekly(day_of_week=day_of_week):
            return {"recurring_pattern": RecurringPattern.WEEKLY, "day_of_week": day_of_week, "day_of_month": None}
        case Monthly(day_of_month=day_of_month):
            return {"recurring_pattern": RecurringPattern.MONTHLY, "day_of_week": None, "day_of_month": day_of_month}
