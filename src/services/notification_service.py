"""Notification service for daily task reminders delivered as push notifications."""

import logging
import random

from src.core import db_client, message_templates
from src.core.clock import Clock, system_clock
from src.core.config import settings
from src.core.errors import DispatchError
from src.core.logging import span
from src.core.recurrence import get_zone
from src.domain.subscription import DeviceToken, PushSubscription
from src.domain.user import User
from src.interface.push_sender import PushDispatcher
from src.models.service_models import NotificationPassSummary, NotificationPayload
from src.services import task_service, user_service


logger = logging.getLogger(__name__)

# user_id -> local "YYYY-MM-DD HH:MM" slot of the last reminder sent
_dispatched_slots: dict[str, str] = {}


def clear_dispatch_log() -> None:
    """Forget which reminder slots were already served."""
    _dispatched_slots.clear()


def build_notification(task_count: int, *, rng: random.Random | None = None) -> NotificationPayload:
    """Reminder content for a user with ``task_count`` tasks due today."""
    return NotificationPayload(
        title=message_templates.daily_title(task_count=task_count),
        body=message_templates.daily_body(task_count=task_count, rng=rng),
        url=settings.app_url,
    )


async def list_subscriptions(*, user_id: str) -> list[PushSubscription]:
    records = await db_client.list_all_records(
        collection="push_subscriptions",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
    )
    return [PushSubscription.model_validate(record) for record in records]


async def register_subscription(*, user_id: str, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
    """Store a device subscription, replacing any existing one with the same endpoint."""
    with span("notification_service.register_subscription"):
        data = {"user_id": user_id, "endpoint": endpoint, "p256dh": p256dh, "auth": auth}
        existing = await db_client.get_first_record(
            collection="push_subscriptions",
            filter_query=f'endpoint = "{db_client.sanitize_param(endpoint)}"',
        )
        if existing:
            record = await db_client.update_record(
                collection="push_subscriptions",
                record_id=existing["id"],
                data=data,
            )
        else:
            record = await db_client.create_record(collection="push_subscriptions", data=data)

        logger.info("Registered push subscription", extra={"user_id": user_id})
        return PushSubscription.model_validate(record)


async def remove_subscription(*, endpoint: str) -> bool:
    """Delete the subscription for an endpoint. Returns False if there was none."""
    with span("notification_service.remove_subscription"):
        removed = await db_client.delete_records(
            collection="push_subscriptions",
            filter_query=f'endpoint = "{db_client.sanitize_param(endpoint)}"',
        )
        return removed > 0


async def list_device_tokens(*, user_id: str) -> list[DeviceToken]:
    records = await db_client.list_all_records(
        collection="device_tokens",
        filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
    )
    return [DeviceToken.model_validate(record) for record in records]


async def register_device_token(*, user_id: str, token: str, platform: str | None = None) -> DeviceToken:
    """Store an FCM registration token, moving it to ``user_id`` if another user had it."""
    with span("notification_service.register_device_token"):
        data = {"user_id": user_id, "token": token, "platform": platform}
        existing = await db_client.get_first_record(
            collection="device_tokens",
            filter_query=f'token = "{db_client.sanitize_param(token)}"',
        )
        if existing:
            record = await db_client.update_record(collection="device_tokens", record_id=existing["id"], data=data)
        else:
            record = await db_client.create_record(collection="device_tokens", data=data)

        logger.info("Registered device token", extra={"user_id": user_id, "platform": platform})
        return DeviceToken.model_validate(record)


async def remove_device_token(*, token: str) -> bool:
    """Delete a device token. Returns False if it was not registered."""
    with span("notification_service.remove_device_token"):
        removed = await db_client.delete_records(
            collection="device_tokens",
            filter_query=f'token = "{db_client.sanitize_param(token)}"',
        )
        return removed > 0


async def dispatch_to_user(
    *,
    user_id: str,
    payload: NotificationPayload,
    dispatcher: PushDispatcher,
) -> int:
    """Send a payload to every Web Push subscription and FCM device token of a user.

    Stale subscriptions and invalid tokens are deleted; other delivery
    failures are logged and skipped.

    Returns:
        Number of subscriptions and devices the payload was delivered to
    """
    with span("notification_service.dispatch_to_user"):
        delivered = 0
        for subscription in await list_subscriptions(user_id=user_id):
            try:
                result = await dispatcher.send(subscription, payload)
            except DispatchError as e:
                if e.stale:
                    await db_client.delete_record(collection="push_subscriptions", record_id=subscription.id)
                    logger.info(
                        "Removed stale push subscription",
                        extra={"user_id": user_id, "subscription_id": subscription.id, "status_code": e.status_code},
                    )
                else:
                    logger.warning(
                        "Push delivery failed",
                        extra={"user_id": user_id, "subscription_id": subscription.id, "error": str(e)},
                    )
                continue

            if result.success:
                delivered += 1

        for device_token in await list_device_tokens(user_id=user_id):
            try:
                result = await dispatcher.send_to_device(device_token, payload)
            except DispatchError as e:
                if e.stale:
                    await db_client.delete_record(collection="device_tokens", record_id=device_token.id)
                    logger.info(
                        "Removed invalid device token",
                        extra={"user_id": user_id, "device_token_id": device_token.id, "status_code": e.status_code},
                    )
                else:
                    logger.warning(
                        "Device push failed",
                        extra={"user_id": user_id, "device_token_id": device_token.id, "error": str(e)},
                    )
                continue

            if result.success:
                delivered += 1

        return delivered


async def send_daily_notification(
    *,
    user: User,
    clock: Clock = system_clock,
    dispatcher: PushDispatcher,
    rng: random.Random | None = None,
) -> bool:
    """Count the user's tasks due today and push a reminder about them.

    Returns:
        True if at least one device received the reminder
    """
    with span("notification_service.send_daily_notification"):
        due = await task_service.get_tasks_due_today(user_id=user.id, timezone=user.timezone, clock=clock)
        payload = build_notification(len(due), rng=rng)
        delivered = await dispatch_to_user(user_id=user.id, payload=payload, dispatcher=dispatcher)

        logger.info(
            "Daily notification sent",
            extra={"user_id": user.id, "task_count": len(due), "delivered": delivered},
        )
        return delivered > 0


async def send_test_notification(*, user_id: str, dispatcher: PushDispatcher) -> int:
    """Push a fixed test message to every device of the user.

    Returns:
        Number of subscriptions and devices the message was delivered to
    """
    with span("notification_service.send_test_notification"):
        payload = NotificationPayload(
            title=message_templates.ping_title(),
            body=message_templates.ping_body(),
            url=settings.app_url,
        )
        return await dispatch_to_user(user_id=user_id, payload=payload, dispatcher=dispatcher)


async def run_notification_pass(
    *,
    clock: Clock = system_clock,
    dispatcher: PushDispatcher,
    rng: random.Random | None = None,
) -> NotificationPassSummary:
    """Remind every opted-in user whose local time matches their reminder time.

    A user is served at most once per local minute; a failing user is logged
    and skipped.
    """
    with span("notification_service.run_notification_pass"):
        now = clock.now()
        summary = NotificationPassSummary()

        for user in await user_service.list_users_with_notifications_enabled():
            summary.users_checked += 1
            try:
                local_now = now.astimezone(get_zone(user.timezone))
                if local_now.strftime("%H:%M") != (user.notification_time or settings.default_notification_time):
                    continue

                slot = local_now.strftime("%Y-%m-%d %H:%M")
                if _dispatched_slots.get(user.id) == slot:
                    continue
                _dispatched_slots[user.id] = slot

                if await send_daily_notification(user=user, clock=clock, dispatcher=dispatcher, rng=rng):
                    summary.notified += 1
            except Exception as e:
                summary.failed += 1
                logger.error(
                    "Failed to send daily notification",
                    extra={"user_id": user.id, "error": str(e)},
                )

        if summary.users_checked:
            logger.info("Notification pass complete", extra=summary.model_dump())
        return summary
