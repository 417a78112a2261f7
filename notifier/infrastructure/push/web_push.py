"""Web Push delivery through VAPID signed requests."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Sequence
from typing import Any

import anyio
import requests
from pywebpush import WebPushException, webpush

from notifier.domain.contracts import PushPayload, SendResult
from notifier.domain.entities import ProviderFamily, PushSubscription
from notifier.domain.errors import (
    EndpointGoneError,
    InvalidCredentialsError,
    ProviderError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/icon.png"
DEFAULT_BADGE = "/badge.png"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


def build_web_push_message(payload: PushPayload) -> str:
    """Return the JSON document the service worker receives."""

    return json.dumps(
        {
            "notification": {
                "title": payload.title,
                "body": payload.message,
                "icon": payload.icon or DEFAULT_ICON,
                "badge": payload.badge or DEFAULT_BADGE,
                "image": payload.image,
                "data": payload.data,
                "actions": list(payload.actions),
                "timestamp": int(time.time() * 1000),
                "requireInteraction": False,
                "tag": payload.data.get("notification_id") or "default",
            }
        },
        default=str,
    )


def classify_web_push_error(exc: WebPushException) -> ProviderError:
    """Translate a pywebpush failure into the provider error taxonomy."""

    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    message = str(exc) or "Failed to send Web Push notification"

    if status_code in (404, 410):
        return EndpointGoneError("Subscription expired", status_code=status_code)
    if status_code in (401, 403):
        return InvalidCredentialsError("Invalid VAPID keys", status_code=status_code)
    return TransientProviderError(message, status_code=status_code)


class WebPushProvider:
    """Send notifications to browser subscriptions."""

    family = ProviderFamily.WEB_PUSH

    def __init__(
        self,
        *,
        vapid_private_key: str,
        vapid_public_key: str,
        vapid_subject: str,
        ttl: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.vapid_private_key = vapid_private_key
        self.vapid_public_key = vapid_public_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        logger.info("Web Push provider initialised with VAPID keys")

    @property
    def public_key(self) -> str:
        return self.vapid_public_key

    def _subscription_info(self, subscription: PushSubscription) -> dict[str, Any]:
        if subscription.keys is None or not subscription.endpoint:
            raise ProviderError("Subscription is missing its endpoint or keys")
        return {
            "endpoint": subscription.endpoint,
            "keys": {
                "p256dh": subscription.keys.p256dh,
                "auth": subscription.keys.auth,
            },
        }

    def _send_sync(self, subscription_info: dict[str, Any], data: str) -> None:
        webpush(
            subscription_info=subscription_info,
            data=data,
            vapid_private_key=self.vapid_private_key,
            vapid_claims={"sub": self.vapid_subject},
            ttl=self.ttl,
        )

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        if subscription.provider_family is not ProviderFamily.WEB_PUSH:
            raise ProviderError("Subscription is not a Web Push subscription")
        if not subscription.is_active:
            raise ProviderError("Subscription is not active")

        subscription_info = self._subscription_info(subscription)
        data = build_web_push_message(payload)

        try:
            await anyio.to_thread.run_sync(self._send_sync, subscription_info, data)
        except WebPushException as exc:
            error = classify_web_push_error(exc)
            logger.warning(
                "Web Push delivery to subscription %s failed (%s): %s",
                subscription.id,
                error.code,
                exc,
            )
            raise error from exc
        except (requests.exceptions.RequestException, ValueError, TypeError) as exc:
            logger.warning(
                "Web Push delivery to subscription %s failed before a response: %s",
                subscription.id,
                exc,
            )
            raise TransientProviderError(
                str(exc) or "Failed to send Web Push notification"
            ) from exc

        logger.info("Web Push notification sent to %s", subscription.recipient_id)

    async def send_batch(
        self, subscriptions: Sequence[PushSubscription], payload: PushPayload
    ) -> list[SendResult]:
        async def _send_one(subscription: PushSubscription) -> SendResult:
            try:
                await self.send(subscription, payload)
            except ProviderError as exc:
                return SendResult(subscription.id, exc)
            except Exception as exc:
                logger.exception(
                    "Unexpected Web Push failure for subscription %s", subscription.id
                )
                error = TransientProviderError(str(exc) or type(exc).__name__)
                return SendResult(subscription.id, error)
            return SendResult(subscription.id)

        results = list(await asyncio.gather(*(_send_one(sub) for sub in subscriptions)))
        logger.info(
            "Web Push batch complete: %d successful, %d failed",
            sum(1 for result in results if result.ok),
            sum(1 for result in results if not result.ok),
        )
        return results


__all__ = [
    "WebPushProvider",
    "build_web_push_message",
    "classify_web_push_error",
]
