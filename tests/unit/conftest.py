"""Pytest configuration and fixtures for unit tests."""

import pytest

from src.domain.subscription import DeviceToken, PushSubscription
from src.models.service_models import NotificationPayload, SendResult
from src.services import notification_service
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.delete_records", in_memory_db.delete_records)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("src.core.db_client.transaction", in_memory_db.transaction)

    return in_memory_db


@pytest.fixture(autouse=True)
def utc_app_timezone(monkeypatch):
    """Pin the app timezone so calendar-day logic does not depend on the environment."""
    monkeypatch.setattr("src.core.config.settings.app_timezone", "UTC")
    monkeypatch.setattr("src.core.config.settings.app_url", "/")


@pytest.fixture(autouse=True)
def clean_dispatch_log():
    notification_service.clear_dispatch_log()
    yield
    notification_service.clear_dispatch_log()


class RecordingDispatcher:
    """Push dispatcher that records deliveries instead of sending them."""

    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.sent: list[tuple[PushSubscription, NotificationPayload]] = []
        self.devices: list[tuple[DeviceToken, NotificationPayload]] = []
        self.fail_with = fail_with

    async def send(self, subscription: PushSubscription, payload: NotificationPayload) -> SendResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((subscription, payload))
        return SendResult(success=True, status_code=201)

    async def send_to_device(self, device_token: DeviceToken, payload: NotificationPayload) -> SendResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.devices.append((device_token, payload))
        return SendResult(success=True, status_code=200)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
