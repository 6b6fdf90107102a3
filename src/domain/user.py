"""User domain models."""

import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_USERNAME_LENGTH = 50
NOTIFICATION_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_timezone_name(value: str) -> str:
    """Return the zone name unchanged if it is a known IANA zone."""
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {value}") from e
    return value


def validate_notification_time(value: str) -> str:
    """Return the time unchanged if it is a 24-hour ``HH:MM`` string."""
    if not NOTIFICATION_TIME_PATTERN.match(value):
        raise ValueError(f"Notification time must be HH:MM (24-hour), got {value!r}")
    return value


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID from database")
    username: str = Field(..., description="Login name")
    timezone: str = Field(default="UTC", description="IANA timezone used for reminders and streak days")
    notification_time: str = Field(default="07:00", description="Local reminder time (HH:MM)")
    notifications_enabled: bool = Field(default=False, description="Whether daily reminders are sent")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username is non-empty and not too long."""
        v = v.strip()
        if not v:
            raise ValueError("Username cannot be empty")
        if len(v) > MAX_USERNAME_LENGTH:
            raise ValueError(f"Username too long (max {MAX_USERNAME_LENGTH} characters)")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return validate_timezone_name(v)

    @field_validator("notification_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return validate_notification_time(v)
