from src.services import (
    achievement_service,
    notification_service,
    progress_service,
    task_service,
    template_service,
    user_service,
)


__all__ = [
    "achievement_service",
    "notification_service",
    "progress_service",
    "task_service",
    "template_service",
    "user_service",
]
