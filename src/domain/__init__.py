"""Domain models and DTOs."""

from src.domain.progress import Achievement, AchievementDefinition, AchievementType, ProgressStats
from src.domain.subscription import DeviceToken, PushSubscription
from src.domain.task import RecurringPattern, Task, TaskCategory, TaskPriority
from src.domain.template import Daily, Monthly, RecurrenceRule, RecurringTemplate, Weekly
from src.domain.user import User


__all__ = [
    "Achievement",
    "AchievementDefinition",
    "AchievementType",
    "Daily",
    "DeviceToken",
    "Monthly",
    "ProgressStats",
    "PushSubscription",
    "RecurrenceRule",
    "RecurringPattern",
    "RecurringTemplate",
    "Task",
    "TaskCategory",
    "TaskPriority",
    "User",
    "Weekly",
]
