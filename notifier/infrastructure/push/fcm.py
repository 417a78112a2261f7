"""Firebase Cloud Messaging delivery for Android and iOS tokens."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import anyio
import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from notifier.domain.contracts import PushPayload, SendResult
from notifier.domain.entities import ProviderFamily, PushSubscription
from notifier.domain.errors import (
    EndpointGoneError,
    InvalidCredentialsError,
    ProviderError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

APP_NAME = "notifier"
MULTICAST_LIMIT = 500
ANDROID_CHANNEL_ID = "default"
ANDROID_COLOR = "#007bff"
RESERVED_DATA_KEYS = frozenset({"from", "notification", "message_type", "collapse_key"})
RESERVED_DATA_PREFIXES = ("google", "gcm")
RESERVED_KEY_PREFIX = "data_"


def classify_fcm_error(exc: Exception) -> ProviderError:
    """Translate a firebase-admin failure into the provider error taxonomy."""

    message = str(exc) or "Failed to send FCM notification"
    if isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return EndpointGoneError(message)
    # INVALID_ARGUMENT also covers malformed payloads; only a rejected token is terminal.
    if isinstance(exc, exceptions.InvalidArgumentError) and _rejects_token(exc):
        return EndpointGoneError(message)
    if isinstance(exc, (messaging.ThirdPartyAuthError, exceptions.UnauthenticatedError)):
        return InvalidCredentialsError(message)
    return TransientProviderError(message)


def _rejects_token(exc: Exception) -> bool:
    return "registration token" in str(exc).lower()


def _data_key(key: Any) -> str:
    name = str(key)
    lowered = name.lower()
    if lowered in RESERVED_DATA_KEYS or lowered.startswith(RESERVED_DATA_PREFIXES):
        return RESERVED_KEY_PREFIX + name
    return name


def _string_data(payload: PushPayload) -> dict[str, str]:
    """FCM data payloads only accept string values."""

    data: dict[str, str] = {}
    for key, value in payload.data.items():
        if value is None:
            continue
        data[_data_key(key)] = value if isinstance(value, str) else json.dumps(value, default=str)
    data["icon"] = payload.icon or ""
    data["badge"] = payload.badge or ""
    data["actions"] = json.dumps(list(payload.actions))
    return data


def _platform_options(payload: PushPayload) -> dict[str, Any]:
    return {
        "notification": messaging.Notification(
            title=payload.title,
            body=payload.message,
            image=payload.image,
        ),
        "data": _string_data(payload),
        "android": messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                channel_id=ANDROID_CHANNEL_ID,
                icon=payload.icon,
                image=payload.image,
                color=ANDROID_COLOR,
            ),
        ),
        "apns": messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(
                    alert=messaging.ApsAlert(title=payload.title, body=payload.message),
                    badge=1,
                    sound="default",
                )
            ),
            fcm_options=messaging.APNSFCMOptions(image=payload.image),
        ),
    }


class FcmProvider:
    """Send notifications to mobile registration tokens."""

    family = ProviderFamily.FCM

    def __init__(
        self,
        *,
        project_id: str,
        private_key: str,
        client_email: str,
        app: firebase_admin.App | None = None,
    ) -> None:
        self._app = app or self._initialise_app(project_id, private_key, client_email)
        logger.info("Firebase Cloud Messaging initialised for project %s", project_id)

    @staticmethod
    def _initialise_app(project_id: str, private_key: str, client_email: str) -> firebase_admin.App:
        try:
            return firebase_admin.get_app(APP_NAME)
        except ValueError:
            pass

        certificate = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": project_id,
                "private_key": private_key.replace("\\n", "\n"),
                "client_email": client_email,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        return firebase_admin.initialize_app(
            certificate, {"projectId": project_id}, name=APP_NAME
        )

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        if subscription.provider_family is not ProviderFamily.FCM:
            raise ProviderError("Subscription is not a FCM subscription")
        if not subscription.is_active:
            raise ProviderError("Subscription is not active")
        if not subscription.token:
            raise ProviderError("Subscription is missing its registration token")

        message = messaging.Message(token=subscription.token, **_platform_options(payload))
        try:
            response = await anyio.to_thread.run_sync(self._send_sync, message)
        except (exceptions.FirebaseError, ValueError) as exc:
            error = classify_fcm_error(exc)
            logger.warning(
                "FCM delivery to subscription %s failed (%s): %s",
                subscription.id,
                error.code,
                exc,
            )
            raise error from exc

        logger.info("FCM notification sent to %s: %s", subscription.recipient_id, response)

    async def send_batch(
        self, subscriptions: Sequence[PushSubscription], payload: PushPayload
    ) -> list[SendResult]:
        results: list[SendResult] = []
        targets: list[PushSubscription] = []
        for subscription in subscriptions:
            if (
                subscription.provider_family is ProviderFamily.FCM
                and subscription.is_active
                and subscription.token
            ):
                targets.append(subscription)
            else:
                results.append(
                    SendResult(
                        subscription.id,
                        ProviderError("Subscription is not an active FCM subscription"),
                    )
                )

        options = _platform_options(payload)
        for offset in range(0, len(targets), MULTICAST_LIMIT):
            chunk = targets[offset : offset + MULTICAST_LIMIT]
            message = messaging.MulticastMessage(
                tokens=[subscription.token for subscription in chunk], **options
            )
            try:
                response = await anyio.to_thread.run_sync(self._send_multicast_sync, message)
            except (exceptions.FirebaseError, ValueError) as exc:
                logger.error("FCM batch send failed: %s", exc)
                error = classify_fcm_error(exc)
                results.extend(SendResult(subscription.id, error) for subscription in chunk)
                continue

            # Responses are positional with the tokens of the chunk.
            for subscription, item in zip(chunk, response.responses):
                if item.success:
                    results.append(SendResult(subscription.id))
                else:
                    results.append(
                        SendResult(subscription.id, classify_fcm_error(item.exception))
                    )
            logger.info(
                "FCM batch complete: %d successful, %d failed",
                response.success_count,
                response.failure_count,
            )

        return results

    def _send_sync(self, message: messaging.Message) -> str:
        return messaging.send(message, app=self._app)

    def _send_multicast_sync(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        return messaging.send_each_for_multicast(message, app=self._app)


__all__ = ["FcmProvider", "classify_fcm_error"]
