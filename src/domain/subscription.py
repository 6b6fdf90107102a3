"""Push subscription and device token domain models."""

from pydantic import BaseModel, Field


class PushSubscription(BaseModel):
    """A device registered to receive push notifications for a user."""

    id: str = Field(..., description="Unique subscription ID")
    user_id: str = Field(..., description="Owner user ID")
    endpoint: str = Field(..., description="Push service endpoint URL")
    p256dh: str = Field(..., description="Client public key")
    auth: str = Field(..., description="Client auth secret")


class DeviceToken(BaseModel):
    """A native app registered for push through Firebase Cloud Messaging."""

    id: str = Field(..., description="Unique token record ID")
    user_id: str = Field(..., description="Owner user ID")
    token: str = Field(..., description="FCM registration token")
    platform: str | None = Field(default=None, description="Client platform, e.g. android or ios")
