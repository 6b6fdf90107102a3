"""Push notification delivery through an HTTP push relay using httpx.

The relay owns the Web Push protocol (VAPID signing, payload encryption)
and the Firebase Cloud Messaging credentials. This module only hands it a
subscription or a device token plus a payload and interprets the answer.
"""

import asyncio
import logging
from typing import Any, Protocol

import httpx

from src.core.config import constants, settings
from src.core.errors import DispatchError
from src.domain.subscription import DeviceToken, PushSubscription
from src.models.service_models import NotificationPayload, SendResult


logger = logging.getLogger(__name__)

# FCM error codes the relay passes through for tokens that will never work again
INVALID_TOKEN_CODES = frozenset(
    {
        "messaging/invalid-registration-token",
        "messaging/registration-token-not-registered",
    }
)


class PushDispatcher(Protocol):
    """Delivers one payload to one subscription or device token.

    Implementations raise DispatchError on failure, with ``stale=True`` when
    the subscription or token is gone for good.
    """

    async def send(self, subscription: PushSubscription, payload: NotificationPayload) -> SendResult: ...

    async def send_to_device(self, device_token: DeviceToken, payload: NotificationPayload) -> SendResult: ...


def _is_stale(response: httpx.Response) -> bool:
    if response.status_code in (constants.HTTP_NOT_FOUND, constants.HTTP_GONE):
        return True
    try:
        code = response.json().get("code")
    except (ValueError, AttributeError):
        return False
    return code in INVALID_TOKEN_CODES


class HttpPushDispatcher:
    """POSTs notifications to the configured push relay with retry on server errors."""

    def __init__(
        self,
        *,
        gateway_url: str,
        api_key: str | None = None,
        max_retries: int = constants.PUSH_MAX_RETRIES,
        retry_delay: float = constants.PUSH_RETRY_DELAY_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._gateway_url = gateway_url
        self._api_key = api_key
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-Api-Key"] = self._api_key
        return headers

    async def send(self, subscription: PushSubscription, payload: NotificationPayload) -> SendResult:
        """Deliver a payload to a Web Push subscription.

        Raises:
            DispatchError: On a client error (``stale`` for 404/410) or when retries run out
        """
        body = {
            "subscription": {
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            "payload": payload.model_dump(),
        }
        return await self._post(body, target={"endpoint": subscription.endpoint})

    async def send_to_device(self, device_token: DeviceToken, payload: NotificationPayload) -> SendResult:
        """Deliver a payload to a native app through FCM.

        Raises:
            DispatchError: On a client error (``stale`` for 404/410 or an invalid
                token code) or when retries run out
        """
        body = {
            "device_token": {"token": device_token.token, "platform": device_token.platform},
            "payload": payload.model_dump(),
        }
        return await self._post(body, target={"device_token_id": device_token.id})

    async def _post(self, body: dict[str, Any], *, target: dict[str, str]) -> SendResult:
        """POST to the relay, retrying server and transport errors with exponential backoff."""
        last_error = "Max retries exceeded"
        last_status: int | None = None
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(
                    timeout=constants.API_TIMEOUT_SECONDS,
                    transport=self._transport,
                ) as client:
                    response = await client.post(self._gateway_url, json=body, headers=self._headers())

                if response.is_success:
                    return SendResult(success=True, status_code=response.status_code)

                if constants.HTTP_CLIENT_ERROR_START <= response.status_code < constants.HTTP_SERVER_ERROR:
                    if _is_stale(response):
                        raise DispatchError(
                            f"Recipient no longer valid: {response.status_code}",
                            status_code=response.status_code,
                            stale=True,
                        )
                    raise DispatchError(
                        f"Client error: {response.status_code} {response.text}",
                        status_code=response.status_code,
                    )

                last_status = response.status_code
                last_error = f"Server error: {response.status_code}"
            except httpx.HTTPError as e:
                last_status = None
                last_error = f"Transport error: {e!s}"

            if attempt < self._max_retries - 1:
                logger.info(
                    "Retrying push delivery",
                    extra={"attempt": attempt + 1, "error": last_error, **target},
                )
                await asyncio.sleep(self._retry_delay * (2**attempt))

        raise DispatchError(f"Failed after {self._max_retries} attempts: {last_error}", status_code=last_status)


class LogOnlyDispatcher:
    """Used when no push relay is configured: logs the payload and reports it undelivered."""

    async def send(self, subscription: PushSubscription, payload: NotificationPayload) -> SendResult:
        return self._skip(subscription.user_id, payload)

    async def send_to_device(self, device_token: DeviceToken, payload: NotificationPayload) -> SendResult:
        return self._skip(device_token.user_id, payload)

    @staticmethod
    def _skip(user_id: str, payload: NotificationPayload) -> SendResult:
        logger.info(
            "Push relay not configured, notification not sent",
            extra={"user_id": user_id, "title": payload.title},
        )
        return SendResult(success=False, error="Push relay not configured")


def build_dispatcher() -> PushDispatcher:
    """Dispatcher for the current settings.

    Raises:
        ValueError: If a relay URL is configured without its API key
    """
    if settings.push_gateway_url:
        return HttpPushDispatcher(
            gateway_url=settings.push_gateway_url,
            api_key=settings.require_credential("push_gateway_api_key", "Push relay"),
        )
    return LogOnlyDispatcher()
