import binascii
import json
from types import SimpleNamespace

import pytest

pytest.importorskip("pywebpush")
pytest.importorskip("firebase_admin")

import requests
from firebase_admin import exceptions, messaging
from pywebpush import WebPushException

from notifier.application.dispatcher import DeliveryDispatcher
from notifier.domain.contracts import PushJob, PushPayload
from notifier.domain.entities import (
    DeviceType,
    Notification,
    NotificationChannel,
    NotificationType,
    PushKeys,
    PushSubscription,
)
from notifier.domain.errors import (
    EndpointGoneError,
    InvalidCredentialsError,
    ProviderError,
    TransientProviderError,
)
from notifier.infrastructure.push import fcm, web_push
from notifier.infrastructure.push.fcm import FcmProvider, classify_fcm_error
from notifier.infrastructure.push.web_push import (
    WebPushProvider,
    build_web_push_message,
    classify_web_push_error,
)

PAYLOAD = PushPayload(
    title="Deploy finished",
    message="Release 1.4 is live",
    data={"notification_id": "n-1", "attempt": 2},
    actions=({"action": "open", "title": "Open"},),
)


def _web(subscription_id: str, **overrides) -> PushSubscription:
    values = dict(
        id=subscription_id,
        recipient_id="user-1",
        device_type=DeviceType.WEB,
        endpoint=f"https://push.example.com/{subscription_id}",
        keys=PushKeys(p256dh="p256", auth="auth"),
    )
    values.update(overrides)
    return PushSubscription(**values)


def _android(subscription_id: str, **overrides) -> PushSubscription:
    values = dict(
        id=subscription_id,
        recipient_id="user-1",
        device_type=DeviceType.ANDROID,
        token=f"token-{subscription_id}",
    )
    values.update(overrides)
    return PushSubscription(**values)


def _web_provider() -> WebPushProvider:
    return WebPushProvider(
        vapid_private_key="private",
        vapid_public_key="public",
        vapid_subject="mailto:ops@example.com",
    )


@pytest.mark.parametrize(
    "status_code, expected",
    [
        (404, EndpointGoneError),
        (410, EndpointGoneError),
        (401, InvalidCredentialsError),
        (403, InvalidCredentialsError),
        (500, TransientProviderError),
        (None, TransientProviderError),
    ],
)
def test_classify_web_push_error(status_code, expected):
    response = SimpleNamespace(status_code=status_code) if status_code else None

    error = classify_web_push_error(WebPushException("push failed", response=response))

    assert type(error) is expected
    assert error.status_code == status_code


def test_web_push_message_shape():
    document = json.loads(build_web_push_message(PAYLOAD))["notification"]

    assert document["title"] == "Deploy finished"
    assert document["body"] == "Release 1.4 is live"
    assert document["icon"] == "/icon.png"
    assert document["badge"] == "/badge.png"
    assert document["tag"] == "n-1"
    assert document["requireInteraction"] is False
    assert document["actions"] == [{"action": "open", "title": "Open"}]
    assert document["data"]["attempt"] == 2


@pytest.mark.anyio
async def test_web_push_batch_reports_each_subscription(monkeypatch):
    calls: list[dict] = []

    def fake_webpush(**kwargs):
        calls.append(kwargs)
        if kwargs["subscription_info"]["endpoint"].endswith("gone"):
            raise WebPushException("gone", response=SimpleNamespace(status_code=410))

    monkeypatch.setattr(web_push, "webpush", fake_webpush)
    provider = _web_provider()

    results = await provider.send_batch([_web("ok"), _web("gone")], PAYLOAD)

    assert [(r.subscription_id, r.ok) for r in results] == [("ok", True), ("gone", False)]
    assert isinstance(results[1].error, EndpointGoneError)
    assert calls[0]["vapid_claims"] == {"sub": "mailto:ops@example.com"}
    assert calls[0]["subscription_info"]["keys"] == {"p256dh": "p256", "auth": "auth"}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "failure",
    [
        requests.exceptions.ConnectionError("connection reset"),
        requests.exceptions.Timeout("read timed out"),
        binascii.Error("Invalid base64-encoded string"),
        RuntimeError("unexpected"),
    ],
)
async def test_web_push_batch_keeps_failures_per_subscription(monkeypatch, failure):
    def fake_webpush(**kwargs):
        if kwargs["subscription_info"]["endpoint"].endswith("bad"):
            raise failure

    monkeypatch.setattr(web_push, "webpush", fake_webpush)

    results = await _web_provider().send_batch([_web("ok"), _web("bad")], PAYLOAD)

    assert [(r.subscription_id, r.ok) for r in results] == [("ok", True), ("bad", False)]
    assert isinstance(results[1].error, TransientProviderError)


@pytest.mark.anyio
async def test_network_failure_counts_against_the_subscription(
    monkeypatch,
    notification_repository,
    preferences_repository,
    subscription_repository,
    presence,
    transport,
):
    def fake_webpush(**kwargs):
        if kwargs["subscription_info"]["endpoint"].endswith("bad"):
            raise requests.exceptions.ConnectionError("connection reset")

    monkeypatch.setattr(web_push, "webpush", fake_webpush)
    dispatcher = DeliveryDispatcher(
        notifications=notification_repository,
        preferences=preferences_repository,
        subscriptions=subscription_repository,
        presence=presence,
        transport=transport,
        providers=[_web_provider()],
    )
    notification = await notification_repository.save(
        Notification(
            id="n-1",
            recipient_id="user-1",
            type=NotificationType.INFO,
            title="t",
            message="m",
            channels=(NotificationChannel.PUSH,),
        )
    )
    await subscription_repository.save(_web("ok"))
    await subscription_repository.save(_web("bad"))

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    assert subscription_repository.items["ok"].failure_count == 0
    assert subscription_repository.items["bad"].failure_count == 1
    assert subscription_repository.items["bad"].is_active
    assert notification_repository.items["n-1"].delivered_at is not None


@pytest.mark.anyio
async def test_web_push_rejects_wrong_or_inactive_subscription():
    provider = _web_provider()

    with pytest.raises(ProviderError):
        await provider.send(_android("a1"), PAYLOAD)
    with pytest.raises(ProviderError):
        await provider.send(_web("w1", is_active=False), PAYLOAD)


@pytest.mark.parametrize(
    "exc, expected",
    [
        (messaging.UnregisteredError("token not registered"), EndpointGoneError),
        (messaging.SenderIdMismatchError("wrong sender"), EndpointGoneError),
        (
            exceptions.InvalidArgumentError(
                "The registration token is not a valid FCM registration token"
            ),
            EndpointGoneError,
        ),
        (
            exceptions.InvalidArgumentError("Invalid data payload key: from"),
            TransientProviderError,
        ),
        (messaging.ThirdPartyAuthError("apns auth"), InvalidCredentialsError),
        (exceptions.UnauthenticatedError("bad credentials"), InvalidCredentialsError),
        (exceptions.UnavailableError("try later"), TransientProviderError),
    ],
)
def test_classify_fcm_error(exc, expected):
    assert type(classify_fcm_error(exc)) is expected


@pytest.mark.anyio
async def test_fcm_batch_aligns_results_with_tokens(monkeypatch):
    sent_tokens: list[list[str]] = []

    def fake_multicast(message, app=None):
        sent_tokens.append(list(message.tokens))
        return SimpleNamespace(
            responses=[
                SimpleNamespace(success=True, exception=None),
                SimpleNamespace(
                    success=False, exception=messaging.UnregisteredError("unregistered")
                ),
            ],
            success_count=1,
            failure_count=1,
        )

    monkeypatch.setattr(fcm.messaging, "send_each_for_multicast", fake_multicast)
    provider = FcmProvider(project_id="p", private_key="k", client_email="e", app=object())

    results = await provider.send_batch(
        [_android("a1"), _android("inactive", is_active=False), _android("a2")], PAYLOAD
    )

    by_id = {result.subscription_id: result for result in results}
    assert sent_tokens == [["token-a1", "token-a2"]]
    assert by_id["a1"].ok
    assert isinstance(by_id["a2"].error, EndpointGoneError)
    assert type(by_id["inactive"].error) is ProviderError


@pytest.mark.anyio
async def test_fcm_batch_failure_fails_whole_chunk(monkeypatch):
    def fake_multicast(message, app=None):
        raise exceptions.UnavailableError("fcm down")

    monkeypatch.setattr(fcm.messaging, "send_each_for_multicast", fake_multicast)
    provider = FcmProvider(project_id="p", private_key="k", client_email="e", app=object())

    results = await provider.send_batch([_android("a1"), _android("a2")], PAYLOAD)

    assert all(isinstance(result.error, TransientProviderError) for result in results)


def test_fcm_data_values_are_strings():
    data = fcm._string_data(PAYLOAD)

    assert data["notification_id"] == "n-1"
    assert data["attempt"] == "2"
    assert json.loads(data["actions"]) == [{"action": "open", "title": "Open"}]
    assert all(isinstance(value, str) for value in data.values())


def test_fcm_reserved_data_keys_are_prefixed():
    payload = PushPayload(
        title="t",
        message="m",
        data={"from": "billing", "google.sent_time": 1, "gcm_id": "x", "notification_id": "n-1"},
    )

    data = fcm._string_data(payload)

    assert data["data_from"] == "billing"
    assert data["data_google.sent_time"] == "1"
    assert data["data_gcm_id"] == "x"
    assert data["notification_id"] == "n-1"
    assert not {"from", "google.sent_time", "gcm_id"} & data.keys()
