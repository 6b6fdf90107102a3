"""Task domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class TaskCategory(StrEnum):
    """Task category shown as a colored tag."""

    PERSONAL = "personal"
    WORK = "work"
    MONEY = "money"
    OTHER = "other"


class TaskPriority(StrEnum):
    """Task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurringPattern(StrEnum):
    """How often a recurring template spawns a new task."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: datetime = Field(..., description="Creation timestamp")
    updated: datetime = Field(..., description="Last update timestamp")
    user_id: str = Field(..., description="Owner user ID")
    title: str = Field(..., description="Task title")
    notes: str | None = Field(default=None, description="Free-form notes")
    category: TaskCategory = Field(default=TaskCategory.PERSONAL, description="Task category")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    completed: bool = Field(default=False, description="Whether the task is done")
    completed_at: datetime | None = Field(default=None, description="Set when completed flips false to true")
    due_date: datetime | None = Field(default=None, description="Deadline (UTC)")
    is_recurring: bool = Field(default=False, description="Whether a template generated this task")
    recurring_pattern: RecurringPattern | None = Field(default=None, description="Pattern copied from the template")
    template_id: str | None = Field(default=None, description="Generating template ID (None for one-off tasks)")
    scheduled_for: datetime | None = Field(
        default=None,
        description="Task stays hidden from listings until this instant passes",
    )

    def is_visible(self, now: datetime) -> bool:
        """Whether the task has reached its scheduled appearance time."""
        return self.scheduled_for is None or self.scheduled_for <= now
