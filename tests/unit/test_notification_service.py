"""Tests for daily reminder notifications."""

import random
from datetime import UTC, datetime

import pytest

from src.core import message_templates
from src.core.errors import DispatchError
from src.domain.subscription import DeviceToken, PushSubscription
from src.interface.push_sender import LogOnlyDispatcher
from src.models.service_models import NotificationPayload, SendResult
from src.services import notification_service, task_service, user_service


class PerRecipientDispatcher:
    """Fails for the endpoints and device tokens it is told to, delivers to the rest."""

    def __init__(self, failures: dict[str, DispatchError]) -> None:
        self.failures = failures
        self.sent: list[str] = []

    async def send(self, subscription: PushSubscription, payload: NotificationPayload) -> SendResult:
        if subscription.endpoint in self.failures:
            raise self.failures[subscription.endpoint]
        self.sent.append(subscription.endpoint)
        return SendResult(success=True, status_code=201)

    async def send_to_device(self, device_token: DeviceToken, payload: NotificationPayload) -> SendResult:
        if device_token.token in self.failures:
            raise self.failures[device_token.token]
        self.sent.append(device_token.token)
        return SendResult(success=True, status_code=200)


async def _subscribed_user(username: str, *, timezone: str = "UTC", notification_time: str = "09:00"):
    user = await user_service.create_user(
        username=username,
        timezone=timezone,
        notification_time=notification_time,
        notifications_enabled=True,
    )
    await notification_service.register_subscription(
        user_id=user.id,
        endpoint=f"https://push.example.com/{username}",
        p256dh="key",
        auth="secret",
    )
    return user


@pytest.mark.unit
class TestBuildNotification:
    @pytest.mark.parametrize(
        ("count", "title"),
        [(0, "Good Morning!"), (1, "1 Task Today!"), (3, "3 Tasks Today!")],
    )
    def test_title_reflects_count(self, count, title):
        assert notification_service.build_notification(count).title == title

    def test_rest_day_body_when_nothing_due(self):
        payload = notification_service.build_notification(0, rng=random.Random(7))

        assert payload.body in message_templates.REST_DAY_MESSAGES
        assert payload.url == "/"

    def test_motivational_body_when_tasks_due(self):
        bodies = {notification_service.build_notification(2, rng=random.Random(seed)).body for seed in range(50)}

        assert bodies <= set(message_templates.MOTIVATIONAL_MESSAGES)
        assert len(bodies) > 1


@pytest.mark.unit
class TestSubscriptions:
    async def test_register_upserts_by_endpoint(self, patched_db):
        await notification_service.register_subscription(
            user_id="u1",
            endpoint="https://push.example.com/a",
            p256dh="k1",
            auth="a1",
        )
        updated = await notification_service.register_subscription(
            user_id="u2",
            endpoint="https://push.example.com/a",
            p256dh="k2",
            auth="a2",
        )

        assert len(patched_db.all("push_subscriptions")) == 1
        assert updated.user_id == "u2"
        assert updated.p256dh == "k2"

    async def test_remove_subscription(self, patched_db):
        await notification_service.register_subscription(
            user_id="u1",
            endpoint="https://push.example.com/a",
            p256dh="k",
            auth="a",
        )

        assert await notification_service.remove_subscription(endpoint="https://push.example.com/a") is True
        assert await notification_service.remove_subscription(endpoint="https://push.example.com/a") is False

    async def test_register_device_token_upserts_by_token(self, patched_db):
        await notification_service.register_device_token(user_id="u1", token="fcm-abc", platform="android")
        moved = await notification_service.register_device_token(user_id="u2", token="fcm-abc", platform="ios")

        assert len(patched_db.all("device_tokens")) == 1
        assert moved.user_id == "u2"
        assert moved.platform == "ios"

    async def test_remove_device_token(self, patched_db):
        await notification_service.register_device_token(user_id="u1", token="fcm-abc")

        assert await notification_service.remove_device_token(token="fcm-abc") is True
        assert await notification_service.remove_device_token(token="fcm-abc") is False


@pytest.mark.unit
class TestDispatchToUser:
    async def test_stale_subscription_is_removed(self, patched_db):
        for name in ("phone", "laptop"):
            await notification_service.register_subscription(
                user_id="u1",
                endpoint=f"https://push.example.com/{name}",
                p256dh="k",
                auth="a",
            )
        dispatcher = PerRecipientDispatcher(
            {"https://push.example.com/phone": DispatchError("gone", status_code=410, stale=True)}
        )
        payload = notification_service.build_notification(1)

        delivered = await notification_service.dispatch_to_user(user_id="u1", payload=payload, dispatcher=dispatcher)

        assert delivered == 1
        assert dispatcher.sent == ["https://push.example.com/laptop"]
        remaining = await notification_service.list_subscriptions(user_id="u1")
        assert [s.endpoint for s in remaining] == ["https://push.example.com/laptop"]

    async def test_other_failures_keep_the_subscription(self, patched_db):
        await notification_service.register_subscription(
            user_id="u1",
            endpoint="https://push.example.com/phone",
            p256dh="k",
            auth="a",
        )
        dispatcher = PerRecipientDispatcher(
            {"https://push.example.com/phone": DispatchError("relay down", status_code=503)}
        )

        delivered = await notification_service.dispatch_to_user(
            user_id="u1",
            payload=notification_service.build_notification(0),
            dispatcher=dispatcher,
        )

        assert delivered == 0
        assert len(await notification_service.list_subscriptions(user_id="u1")) == 1

    async def test_fans_out_to_device_tokens(self, patched_db, dispatcher):
        await notification_service.register_subscription(
            user_id="u1",
            endpoint="https://push.example.com/laptop",
            p256dh="k",
            auth="a",
        )
        await notification_service.register_device_token(user_id="u1", token="fcm-phone", platform="android")
        await notification_service.register_device_token(user_id="u2", token="fcm-other")

        delivered = await notification_service.dispatch_to_user(
            user_id="u1",
            payload=notification_service.build_notification(1),
            dispatcher=dispatcher,
        )

        assert delivered == 2
        assert [s.endpoint for s, _ in dispatcher.sent] == ["https://push.example.com/laptop"]
        assert [d.token for d, _ in dispatcher.devices] == ["fcm-phone"]

    async def test_invalid_device_token_is_removed(self, patched_db):
        for token in ("fcm-phone", "fcm-tablet"):
            await notification_service.register_device_token(user_id="u1", token=token)
        dispatcher = PerRecipientDispatcher(
            {"fcm-phone": DispatchError("token not registered", status_code=400, stale=True)}
        )
        payload = notification_service.build_notification(1)

        delivered = await notification_service.dispatch_to_user(user_id="u1", payload=payload, dispatcher=dispatcher)

        assert delivered == 1
        assert dispatcher.sent == ["fcm-tablet"]
        remaining = await notification_service.list_device_tokens(user_id="u1")
        assert [t.token for t in remaining] == ["fcm-tablet"]

    async def test_other_device_failures_keep_the_token(self, patched_db):
        await notification_service.register_device_token(user_id="u1", token="fcm-phone")
        dispatcher = PerRecipientDispatcher({"fcm-phone": DispatchError("relay down", status_code=503)})

        delivered = await notification_service.dispatch_to_user(
            user_id="u1",
            payload=notification_service.build_notification(0),
            dispatcher=dispatcher,
        )

        assert delivered == 0
        assert len(await notification_service.list_device_tokens(user_id="u1")) == 1

    async def test_send_test_notification(self, patched_db, dispatcher):
        await notification_service.register_subscription(
            user_id="u1",
            endpoint="https://push.example.com/phone",
            p256dh="k",
            auth="a",
        )

        assert await notification_service.send_test_notification(user_id="u1", dispatcher=dispatcher) == 1
        [(_, payload)] = dispatcher.sent
        assert payload.title == "Test Notification"


@pytest.mark.unit
class TestRunNotificationPass:
    async def test_reminds_user_at_their_time_with_due_count(self, patched_db, clock, dispatcher):
        user = await _subscribed_user("ada")
        for title in ("Laundry", "Email"):
            await task_service.create_task(
                user_id=user.id,
                title=title,
                due_date=datetime(2026, 10, 14, 20, 0, tzinfo=UTC),
            )

        summary = await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)

        assert summary.users_checked == 1
        assert summary.notified == 1
        [(subscription, payload)] = dispatcher.sent
        assert subscription.user_id == user.id
        assert payload.title == "2 Tasks Today!"
        assert payload.body in message_templates.MOTIVATIONAL_MESSAGES

    async def test_matches_in_the_users_timezone(self, patched_db, clock, dispatcher):
        # 09:00 UTC is 18:00 in Tokyo
        tokyo = await _subscribed_user("kenji", timezone="Asia/Tokyo", notification_time="18:00")
        await _subscribed_user("lena", timezone="Europe/Berlin", notification_time="09:00")

        summary = await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)

        assert summary.users_checked == 2
        assert [s.user_id for s, _ in dispatcher.sent] == [tokyo.id]

    async def test_at_most_once_per_minute(self, patched_db, clock, dispatcher):
        await _subscribed_user("ada")

        await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)
        clock.advance(seconds=30)
        second = await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)

        assert second.notified == 0
        assert len(dispatcher.sent) == 1

        clock.advance(days=1, seconds=-30)
        await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)
        assert len(dispatcher.sent) == 2

    async def test_skips_users_who_opted_out(self, patched_db, clock, dispatcher):
        user = await _subscribed_user("ada")
        await user_service.update_notification_preferences(user_id=user.id, enabled=False)

        summary = await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)

        assert summary.users_checked == 0
        assert dispatcher.sent == []

    async def test_failing_user_does_not_block_others(self, patched_db, clock, dispatcher, monkeypatch):
        broken = await _subscribed_user("broken")
        healthy = await _subscribed_user("healthy")
        real_due_today = task_service.get_tasks_due_today

        async def flaky_due_today(*, user_id, timezone=None, clock):
            if user_id == broken.id:
                raise RuntimeError("query failed")
            return await real_due_today(user_id=user_id, timezone=timezone, clock=clock)

        monkeypatch.setattr(task_service, "get_tasks_due_today", flaky_due_today)

        summary = await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)

        assert summary.failed == 1
        assert summary.notified == 1
        assert [s.user_id for s, _ in dispatcher.sent] == [healthy.id]

    async def test_unconfigured_relay_reports_nothing_delivered(self, patched_db, clock):
        user = await _subscribed_user("ada")

        assert (
            await notification_service.send_daily_notification(user=user, clock=clock, dispatcher=LogOnlyDispatcher())
            is False
        )

    async def test_device_token_alone_counts_as_notified(self, patched_db, clock, dispatcher):
        user = await user_service.create_user(username="ada", notifications_enabled=True, notification_time="09:00")
        await notification_service.register_device_token(user_id=user.id, token="fcm-phone")

        summary = await notification_service.run_notification_pass(clock=clock, dispatcher=dispatcher)

        assert summary.notified == 1
        assert dispatcher.sent == []
        [(device_token, payload)] = dispatcher.devices
        assert device_token.user_id == user.id
        assert payload.title == "Good Morning!"
