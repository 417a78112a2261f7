from datetime import datetime, timedelta, timezone

import pytest

from notifier.application.dispatcher import DeliveryDispatcher, NotificationRequest
from notifier.domain.contracts import PushJob, PushPayload
from notifier.domain.entities import (
    DeviceType,
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    PushKeys,
    PushSubscription,
    QuietHours,
    UserPreferences,
)
from notifier.domain.errors import (
    EndpointGoneError,
    InfrastructureError,
    InvalidCredentialsError,
    NoEligibleChannelError,
    TransientProviderError,
    ValidationError,
)

pytestmark = pytest.mark.anyio


def _request(**overrides) -> NotificationRequest:
    values = dict(type=NotificationType.INFO, title="Hello", message="A new report is ready")
    values.update(overrides)
    return NotificationRequest(**values)


def _web(subscription_id: str, recipient_id: str = "user-1", **overrides) -> PushSubscription:
    values = dict(
        id=subscription_id,
        recipient_id=recipient_id,
        device_type=DeviceType.WEB,
        endpoint=f"https://push.example.com/{subscription_id}",
        keys=PushKeys(p256dh="p256", auth="auth"),
    )
    values.update(overrides)
    return PushSubscription(**values)


def _android(subscription_id: str, recipient_id: str = "user-1") -> PushSubscription:
    return PushSubscription(
        id=subscription_id,
        recipient_id=recipient_id,
        device_type=DeviceType.ANDROID,
        token=f"token-{subscription_id}",
    )


async def _stored_notification(repository, recipient_id: str = "user-1") -> Notification:
    return await repository.save(
        Notification(
            id="n-1",
            recipient_id=recipient_id,
            type=NotificationType.INFO,
            title="t",
            message="m",
            channels=(NotificationChannel.PUSH,),
        )
    )


async def test_create_for_offline_recipient_persists_and_queues_push(
    dispatcher, notification_repository, transport, queue
):
    notification = await dispatcher.create_and_deliver("user-1", _request())

    assert notification_repository.items[notification.id] == notification
    assert notification.channels == (
        NotificationChannel.IN_APP,
        NotificationChannel.PUSH,
        NotificationChannel.REALTIME,
    )
    assert notification.expires_at == notification.created_at + timedelta(days=30)
    assert transport.emitted == []
    assert [job.notification_id for job in queue.jobs] == [notification.id]
    assert queue.jobs[0].payload.data["notification_id"] == notification.id


async def test_online_recipient_receives_realtime_and_is_marked_delivered(
    dispatcher, presence, notification_repository, transport
):
    await presence.connect("c1", "user-1")

    notification = await dispatcher.create_and_deliver(
        "user-1", _request(channels=(NotificationChannel.REALTIME,))
    )

    [(recipient_id, event, payload)] = transport.emitted
    assert (recipient_id, event) == ("user-1", "notification")
    assert payload["id"] == notification.id
    assert payload["type"] == "info"
    assert notification_repository.items[notification.id].delivered_at is not None


async def test_realtime_emission_failure_keeps_notification(
    dispatcher, presence, notification_repository, transport
):
    await presence.connect("c1", "user-1")
    transport.fail = True

    notification = await dispatcher.create_and_deliver(
        "user-1", _request(channels=(NotificationChannel.REALTIME,))
    )

    assert notification_repository.items[notification.id].delivered_at is None


async def test_all_channels_disabled_rejects_request(
    dispatcher, preferences_repository, notification_repository
):
    preferences = UserPreferences(recipient_id="user-1")
    preferences.set_channel(NotificationType.INFO, in_app=False, push=False, realtime=False)
    await preferences_repository.save(preferences)

    with pytest.raises(NoEligibleChannelError):
        await dispatcher.create_and_deliver("user-1", _request())

    assert notification_repository.items == {}


async def test_explicit_channels_override_preferences(
    dispatcher, preferences_repository, queue
):
    preferences = UserPreferences(recipient_id="user-1")
    preferences.set_channel(NotificationType.INFO, in_app=False, push=False, realtime=False)
    await preferences_repository.save(preferences)

    notification = await dispatcher.create_and_deliver(
        "user-1", _request(channels=(NotificationChannel.IN_APP,))
    )

    assert notification.channels == (NotificationChannel.IN_APP,)
    assert queue.jobs == []


async def test_quiet_hours_suppress_non_urgent_delivery(
    dispatcher, preferences_repository, presence, transport, queue, notification_repository
):
    await preferences_repository.save(
        UserPreferences(
            recipient_id="user-1",
            quiet_hours=QuietHours(enabled=True, start="00:00", end="00:00", timezone="UTC"),
        )
    )
    await presence.connect("c1", "user-1")

    quiet = await dispatcher.create_and_deliver("user-1", _request())
    assert quiet.id in notification_repository.items
    assert transport.emitted == []
    assert queue.jobs == []

    urgent = await dispatcher.create_and_deliver(
        "user-1", _request(priority=NotificationPriority.URGENT)
    )
    assert [job.notification_id for job in queue.jobs] == [urgent.id]
    assert len(transport.emitted) == 1


async def test_invalid_content_raises_validation_error(dispatcher, notification_repository):
    with pytest.raises(ValidationError):
        await dispatcher.create_and_deliver("user-1", _request(title="x" * 101))

    assert notification_repository.items == {}


async def test_bulk_isolates_failing_recipient(dispatcher, notification_repository):
    notification_repository.failing_recipients.add("B")

    result = await dispatcher.create_bulk(["A", "B", "C"], _request())

    assert [n.recipient_id for n in result.successful] == ["A", "C"]
    assert [(f.recipient_id, f.reason) for f in result.failed] == [
        ("B", "database unavailable")
    ]
    assert result.total == 3
    assert {n.recipient_id for n in notification_repository.items.values()} == {"A", "C"}


async def test_bulk_deduplicates_recipients_across_chunks(dispatcher, notification_repository):
    result = await dispatcher.create_bulk(["A", "B", "A", "C", "D", "C", "E"], _request())

    assert [n.recipient_id for n in result.successful] == ["A", "B", "C", "D", "E"]
    assert result.failed == []
    assert len(notification_repository.items) == 5


async def test_bulk_reports_validation_failure_per_recipient(dispatcher):
    result = await dispatcher.create_bulk(["A", "B"], _request(message=""))

    assert result.successful == []
    assert [f.reason for f in result.failed] == ["Notification message is required"] * 2


async def test_bulk_reports_unexpected_errors(dispatcher, notification_repository):
    async def explode(notification):
        raise RuntimeError("driver crashed")

    notification_repository.save = explode

    result = await dispatcher.create_bulk(["A"], _request())

    assert [(f.recipient_id, f.reason) for f in result.failed] == [("A", "driver crashed")]


async def test_bulk_applies_each_recipients_preferences(dispatcher, preferences_repository):
    muted_push = UserPreferences(recipient_id="A")
    muted_push.set_channel(NotificationType.INFO, push=False)
    muted_everything = UserPreferences(recipient_id="C")
    muted_everything.set_channel(NotificationType.INFO, in_app=False, push=False, realtime=False)
    await preferences_repository.save(muted_push)
    await preferences_repository.save(muted_everything)

    result = await dispatcher.create_bulk(["A", "B", "C"], _request())

    channels = {n.recipient_id: n.channels for n in result.successful}
    assert channels == {
        "A": (NotificationChannel.IN_APP, NotificationChannel.REALTIME),
        "B": (
            NotificationChannel.IN_APP,
            NotificationChannel.PUSH,
            NotificationChannel.REALTIME,
        ),
    }
    assert [(f.recipient_id, f.reason) for f in result.failed] == [
        ("C", "Recipient has disabled all channels for this notification type")
    ]


async def test_bulk_accepts_expiry_without_offset(dispatcher):
    expires_at = datetime(2099, 1, 1)

    result = await dispatcher.create_bulk(["A"], _request(expires_at=expires_at))

    assert result.failed == []
    [notification] = result.successful
    assert notification.expires_at == expires_at.replace(tzinfo=timezone.utc)


async def test_push_job_reconciles_every_subscription(
    dispatcher, subscription_repository, notification_repository, web_provider, fcm_provider
):
    notification = await _stored_notification(notification_repository)
    for subscription in (_web("ok"), _web("gone"), _android("flaky")):
        await subscription_repository.save(subscription)
    web_provider.outcomes["gone"] = EndpointGoneError("Subscription expired", status_code=410)
    fcm_provider.outcomes["flaky"] = TransientProviderError("unavailable")

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    items = subscription_repository.items
    assert items["ok"].is_active and items["ok"].failure_count == 0
    assert not items["gone"].is_active
    assert items["gone"].error_message == "Subscription expired"
    assert items["flaky"].is_active and items["flaky"].failure_count == 1
    assert sorted(web_provider.batches[0]) == ["gone", "ok"]
    assert fcm_provider.batches == [["flaky"]]
    assert notification_repository.items[notification.id].delivered_at is not None


async def test_push_job_without_success_marks_notification_failed(
    dispatcher, subscription_repository, notification_repository, web_provider
):
    notification = await _stored_notification(notification_repository)
    await subscription_repository.save(_web("s1"))
    web_provider.outcomes["s1"] = InvalidCredentialsError("Invalid VAPID keys")

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    stored = notification_repository.items[notification.id]
    assert stored.failed_at is not None
    assert stored.error_message == "Invalid VAPID keys"
    assert subscription_repository.items["s1"].failure_count == 1


async def test_three_failed_jobs_deactivate_subscription(
    dispatcher, subscription_repository, notification_repository, web_provider
):
    notification = await _stored_notification(notification_repository)
    await subscription_repository.save(_web("s1"))
    web_provider.outcomes["s1"] = TransientProviderError("timeout")
    job = PushJob.from_notification(notification)

    for _ in range(3):
        await dispatcher.process_push_job(job)

    assert not subscription_repository.items["s1"].is_active
    await dispatcher.process_push_job(job)
    assert len(web_provider.batches) == 3


async def test_update_failure_does_not_block_other_subscriptions(
    dispatcher, subscription_repository, notification_repository, web_provider
):
    notification = await _stored_notification(notification_repository)
    await subscription_repository.save(_web("s1"))
    await subscription_repository.save(_web("s2"))
    subscription_repository.failing_updates.add("s1")
    web_provider.outcomes["s2"] = EndpointGoneError("Subscription expired")

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    assert subscription_repository.items["s1"].is_active
    assert not subscription_repository.items["s2"].is_active


async def test_whole_batch_error_counts_against_each_subscription(
    dispatcher, subscription_repository, notification_repository, fcm_provider
):
    notification = await _stored_notification(notification_repository)
    await subscription_repository.save(_android("a1"))
    await subscription_repository.save(_android("a2"))
    fcm_provider.raise_on_batch = TransientProviderError("quota exceeded")

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    assert subscription_repository.items["a1"].failure_count == 1
    assert subscription_repository.items["a2"].failure_count == 1
    assert notification_repository.items[notification.id].error_message == "quota exceeded"


async def test_unexpected_batch_error_counts_against_each_subscription(
    dispatcher, subscription_repository, notification_repository, web_provider
):
    notification = await _stored_notification(notification_repository)
    await subscription_repository.save(_web("w1"))
    await subscription_repository.save(_web("w2"))
    web_provider.raise_on_batch = ConnectionError("connection reset")

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    assert subscription_repository.items["w1"].failure_count == 1
    assert subscription_repository.items["w2"].failure_count == 1
    assert notification_repository.items[notification.id].error_message == "connection reset"


async def test_endpoint_gone_deactivates_without_touching_counter(
    dispatcher, subscription_repository, notification_repository, web_provider
):
    notification = await _stored_notification(notification_repository)
    worn = _web("worn").record_failure("timeout").record_failure("timeout")
    await subscription_repository.save(worn)
    await subscription_repository.save(_web("fresh"))
    for subscription_id in ("worn", "fresh"):
        web_provider.outcomes[subscription_id] = EndpointGoneError("Subscription expired")

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    items = subscription_repository.items
    assert not items["worn"].is_active and items["worn"].failure_count == 2
    assert not items["fresh"].is_active and items["fresh"].failure_count == 0


async def test_missing_provider_skips_family(
    notification_repository,
    preferences_repository,
    subscription_repository,
    presence,
    transport,
    web_provider,
):
    dispatcher = DeliveryDispatcher(
        notifications=notification_repository,
        preferences=preferences_repository,
        subscriptions=subscription_repository,
        presence=presence,
        transport=transport,
        providers=[web_provider],
    )
    notification = await _stored_notification(notification_repository)
    await subscription_repository.save(_web("w1"))
    await subscription_repository.save(_android("a1"))

    await dispatcher.process_push_job(PushJob.from_notification(notification))

    assert web_provider.batches == [["w1"]]
    assert subscription_repository.items["a1"].failure_count == 0
    assert notification_repository.items[notification.id].delivered_at is not None


async def test_repository_failure_propagates_for_retry(dispatcher, subscription_repository):
    subscription_repository.fail_reads = True
    job = PushJob(notification_id="", recipient_id="user-1", payload=PushPayload("t", "m"))

    with pytest.raises(InfrastructureError):
        await dispatcher.process_push_job(job)


async def test_incomplete_subscriptions_are_not_sent(
    dispatcher, subscription_repository, web_provider
):
    await subscription_repository.save(_web("broken", keys=None))
    job = PushJob(notification_id="", recipient_id="user-1", payload=PushPayload("t", "m"))

    await dispatcher.process_push_job(job)

    assert web_provider.batches == []


async def test_digest_collapses_many_pending_notifications(dispatcher, queue):
    for index in range(6):
        await dispatcher.create_and_deliver(
            "user-1", _request(title=f"n{index}", channels=(NotificationChannel.IN_APP,))
        )

    submitted = await dispatcher.deliver_digest("user-1")

    assert submitted == 1
    [job] = queue.jobs
    assert job.notification_id == ""
    assert job.payload.data["type"] == "digest"
    assert len(job.payload.data["notification_ids"]) == 6
    assert job.payload.message == "6 new notifications: 6 info"


async def test_digest_sends_few_notifications_individually(
    dispatcher, queue, notification_repository
):
    expired = Notification(
        id="old",
        recipient_id="user-1",
        type=NotificationType.INFO,
        title="t",
        message="m",
        channels=(NotificationChannel.IN_APP,),
        expires_at=datetime(2000, 1, 1, tzinfo=timezone.utc),
    )
    await notification_repository.save(expired)
    low = await dispatcher.create_and_deliver(
        "user-1",
        _request(priority=NotificationPriority.LOW, channels=(NotificationChannel.IN_APP,)),
    )
    high = await dispatcher.create_and_deliver(
        "user-1",
        _request(priority=NotificationPriority.HIGH, channels=(NotificationChannel.IN_APP,)),
    )

    submitted = await dispatcher.deliver_digest("user-1")

    assert submitted == 2
    assert [job.notification_id for job in queue.jobs] == [high.id, low.id]


async def test_digest_without_queue_is_skipped(
    notification_repository, preferences_repository, subscription_repository, presence, transport
):
    dispatcher = DeliveryDispatcher(
        notifications=notification_repository,
        preferences=preferences_repository,
        subscriptions=subscription_repository,
        presence=presence,
        transport=transport,
    )

    assert await dispatcher.deliver_digest("user-1") == 0
