"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, bundling the
results of multi-step operations into typed objects.
"""

from pydantic import BaseModel, Field

from src.domain.progress import Achievement, ProgressStats
from src.domain.task import Task


class CompletionResult(BaseModel):
    """Outcome of completing a task."""

    task: Task
    stats: ProgressStats
    newly_unlocked: list[Achievement] = Field(default_factory=list)


class RegenerationSummary(BaseModel):
    """Counts from one regeneration pass over active templates."""

    checked: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0


class NotificationPayload(BaseModel):
    """Body of a push notification as delivered to the device."""

    title: str
    body: str
    url: str = "/"


class SendResult(BaseModel):
    """Result of delivering one payload to one subscription."""

    success: bool
    status_code: int | None = None
    error: str | None = None


class NotificationPassSummary(BaseModel):
    """Counts from one notification pass."""

    users_checked: int = 0
    notified: int = 0
    failed: int = 0
