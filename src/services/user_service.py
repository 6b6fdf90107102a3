"""User service for accounts and notification preferences."""

import logging

from src.core import db_client
from src.core.config import settings
from src.core.errors import NotFoundError, ValidationError
from src.core.logging import span
from src.domain.user import User, validate_notification_time, validate_timezone_name
from src.services import achievement_service, progress_service


logger = logging.getLogger(__name__)


def _validated(*, timezone: str, notification_time: str) -> None:
    try:
        validate_timezone_name(timezone)
        validate_notification_time(notification_time)
    except ValueError as e:
        raise ValidationError(str(e)) from e


async def create_user(
    *,
    username: str,
    timezone: str | None = None,
    notification_time: str | None = None,
    notifications_enabled: bool = False,
) -> User:
    """Create a user and seed their progress stats and achievement catalog.

    Args:
        username: Login name (must be unique)
        timezone: IANA zone, defaults to the app timezone
        notification_time: Local reminder time (HH:MM), defaults to the configured default
        notifications_enabled: Whether daily reminders are sent

    Returns:
        The created user

    Raises:
        ValidationError: If the timezone or time is malformed, or the username is taken
    """
    with span("user_service.create_user"):
        timezone = timezone or settings.app_timezone
        notification_time = notification_time or settings.default_notification_time
        _validated(timezone=timezone, notification_time=notification_time)

        existing = await db_client.get_first_record(
            collection="users",
            filter_query=f'username = "{db_client.sanitize_param(username)}"',
        )
        if existing:
            msg = f"Username already taken: {username}"
            raise ValidationError(msg)

        async with db_client.transaction():
            record = await db_client.create_record(
                collection="users",
                data={
                    "username": username,
                    "timezone": timezone,
                    "notification_time": notification_time,
                    "notifications_enabled": notifications_enabled,
                },
            )
            user = User.model_validate(record)
            await progress_service.get_stats(user_id=user.id)
            await achievement_service.seed_achievements(user_id=user.id)

        logger.info("Created user", extra={"user_id": user.id, "timezone": timezone})
        return user


async def get_user(*, user_id: str) -> User:
    """Get a user by ID.

    Raises:
        NotFoundError: If the user does not exist
    """
    with span("user_service.get_user"):
        try:
            record = await db_client.get_record(collection="users", record_id=user_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError("User", user_id) from e
        return User.model_validate(record)


async def update_notification_preferences(
    *,
    user_id: str,
    enabled: bool | None = None,
    notification_time: str | None = None,
    timezone: str | None = None,
) -> User:
    """Change reminder settings; omitted arguments keep their current value.

    Raises:
        NotFoundError: If the user does not exist
        ValidationError: If the time or timezone is malformed
    """
    with span("user_service.update_notification_preferences"):
        user = await get_user(user_id=user_id)
        _validated(
            timezone=timezone or user.timezone,
            notification_time=notification_time or user.notification_time,
        )

        data: dict[str, object] = {}
        if enabled is not None:
            data["notifications_enabled"] = enabled
        if notification_time is not None:
            data["notification_time"] = notification_time
        if timezone is not None:
            data["timezone"] = timezone
        if not data:
            return user

        record = await db_client.update_record(collection="users", record_id=user_id, data=data)
        logger.info("Updated notification preferences", extra={"user_id": user_id, **data})
        return User.model_validate(record)


async def list_users_with_notifications_enabled() -> list[User]:
    """All users who opted in to daily reminders."""
    with span("user_service.list_users_with_notifications_enabled"):
        records = await db_client.list_all_records(
            collection="users",
            filter_query='notifications_enabled = "true"',
        )
        return [User.model_validate(record) for record in records]