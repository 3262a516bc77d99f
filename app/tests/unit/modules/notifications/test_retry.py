from datetime import timedelta

import pytest
import schedule

from infrastructure.configuration.features import NotificationRetrySettings
from modules.notifications.errors import (
    NotificationNotFoundError,
    NotificationStoreError,
    NothingToRetryError,
    RetryExhaustedError,
    RetryInProgressError,
)
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    NotificationPriority,
    NotificationRequest,
    NotificationType,
    utc_now,
)
from modules.notifications.retry import RetryConfig, RetryMetrics

EMAIL_DOWN = DeliveryOutcome.failure("Email API server error (500)")


def send_task(relay, recipient="user-1"):
    return relay["dispatcher"].send(
        NotificationRequest(
            recipient=recipient,
            type=NotificationType.TASK_ASSIGNED,
            title="New task",
            message="You were assigned 'Quarterly report'",
        )
    )


@pytest.fixture
def failing_email_relay(relay, recipient_factory, fake_channel_factory):
    """User with realtime + email, email always failing, two operators."""
    relay["directory"].upsert(recipient_factory("user-1"))
    relay["directory"].upsert(recipient_factory("op-1", is_operator=True))
    relay["directory"].upsert(recipient_factory("op-2", is_operator=True))
    relay["channels"][Channel.EMAIL] = fake_channel_factory(Channel.EMAIL, EMAIL_DOWN)
    return relay


@pytest.mark.unit
class TestRetryConfig:
    def test_backoff_grows_with_each_cycle(self):
        config = RetryConfig(max_retries=4, backoff_multiplier=2.0, base_delay_seconds=60)
        now = utc_now()

        delays = [config.next_retry_at(now, count) - now for count in (1, 2, 3)]

        assert delays == [timedelta(seconds=120), timedelta(seconds=240), timedelta(seconds=480)]
        assert config.next_retry_at(now, 4) is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"backoff_multiplier": 1.0},
            {"max_retries": 0},
            {"interval_seconds": 0},
            {"batch_size": 0},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            RetryConfig(**overrides)

    def test_from_settings(self):
        settings = NotificationRetrySettings(
            NOTIFICATION_MAX_RETRIES=5, NOTIFICATION_BACKOFF_MULTIPLIER=3.0
        )

        config = RetryConfig.from_settings(settings)

        assert config.max_retries == 5
        assert config.backoff_multiplier == 3.0
        assert config.interval_seconds == 300


@pytest.mark.unit
class TestProcessRetries:
    def test_failed_channel_retried_with_backoff_until_escalated(
        self, failing_email_relay, frozen_now
    ):
        relay = failing_email_relay
        clock = frozen_now()
        scheduler, store = relay["scheduler"], relay["store"]
        notification = send_task(relay)

        first = scheduler.process_retries()
        record = store.get(notification.id)
        assert first.processed == 1 and first.failed == 1
        assert record.retry_count == 1
        assert record.next_retry_at - clock.now == timedelta(seconds=120)
        assert record.is_retrying is False

        assert scheduler.process_retries().candidates == 0

        clock.advance(seconds=120)
        scheduler.process_retries()
        record = store.get(notification.id)
        assert record.retry_count == 2
        assert record.next_retry_at - clock.now == timedelta(seconds=240)

        clock.advance(seconds=240)
        third = scheduler.process_retries()
        record = store.get(notification.id)
        assert third.escalated == 1
        assert record.retry_count == 3
        assert record.next_retry_at is None
        assert record.escalated is True
        assert record.channels.get(Channel.REALTIME).sent is True
        assert record.failing_channels == [Channel.EMAIL]

        for _ in range(5):
            clock.advance(hours=1)
            scheduler.process_retries()

        assert store.get(notification.id).retry_count == 3
        assert store.unread_count("op-1") == 1
        assert store.unread_count("op-2") == 1
        assert scheduler.metrics.escalations_triggered == 1

    def test_only_failing_channels_are_retried(self, failing_email_relay, frozen_now):
        relay = failing_email_relay
        frozen_now()
        send_task(relay)

        relay["scheduler"].process_retries()

        assert len(relay["channels"][Channel.REALTIME].calls) == 1
        assert len(relay["channels"][Channel.EMAIL].calls) == 2

    def test_recovered_channel_stops_retrying(
        self, relay, recipient_factory, fake_channel_factory, frozen_now
    ):
        clock = frozen_now()
        relay["directory"].upsert(recipient_factory())
        relay["channels"][Channel.EMAIL] = fake_channel_factory(
            Channel.EMAIL, EMAIL_DOWN, DeliveryOutcome.ok()
        )
        notification = send_task(relay)

        stats = relay["scheduler"].process_retries()

        record = relay["store"].get(notification.id)
        assert stats.succeeded == 1
        assert record.failing_channels == []
        assert record.channels.get(Channel.EMAIL).sent is True
        clock.advance(days=1)
        assert relay["scheduler"].process_retries().candidates == 0
        assert relay["scheduler"].metrics.retries_succeeded == 1

    def test_guard_held_elsewhere_is_skipped(self, failing_email_relay, frozen_now):
        relay = failing_email_relay
        frozen_now()
        notification = send_task(relay)
        relay["store"].try_begin_retry(notification.id)

        stats = relay["scheduler"].process_retries()

        assert stats.candidates == 0
        assert relay["store"].get(notification.id).retry_count == 0

    def test_lost_guard_race_is_skipped(self, failing_email_relay, frozen_now, monkeypatch):
        relay = failing_email_relay
        frozen_now()
        send_task(relay)
        monkeypatch.setattr(relay["store"], "try_begin_retry", lambda notification_id: False)

        stats = relay["scheduler"].process_retries()

        assert stats.skipped == 1
        assert len(relay["channels"][Channel.EMAIL].calls) == 1

    def test_error_on_one_record_does_not_stop_the_cycle(
        self, failing_email_relay, recipient_factory, frozen_now, monkeypatch
    ):
        relay = failing_email_relay
        frozen_now()
        relay["directory"].upsert(recipient_factory("user-2"))
        broken = send_task(relay, "user-1")
        healthy = send_task(relay, "user-2")
        dispatcher = relay["dispatcher"]
        original = dispatcher.retry_channels

        def retry_channels(notification, channels):
            if notification.id == broken.id:
                raise RuntimeError("unexpected")
            return original(notification, channels)

        monkeypatch.setattr(dispatcher, "retry_channels", retry_channels)

        stats = relay["scheduler"].process_retries()

        assert stats.errors == 1
        assert stats.processed == 1
        assert relay["store"].get(broken.id).is_retrying is False
        assert relay["store"].get(broken.id).retry_count == 0
        assert relay["store"].get(healthy.id).retry_count == 1

    def test_removed_recipient_fails_channels_permanently(
        self, relay, notification_factory, frozen_now
    ):
        frozen_now()
        record = relay["store"].create(
            notification_factory(recipient="gone", failing=[Channel.EMAIL])
        )

        relay["scheduler"].process_retries()

        updated = relay["store"].get(record.id)
        assert updated.retry_count == 1
        assert updated.channels.get(Channel.EMAIL).error == "Unknown recipient: gone"

    def test_escalation_notices_are_never_escalated(
        self, failing_email_relay, notification_factory, frozen_now
    ):
        relay = failing_email_relay
        frozen_now()
        notice = relay["store"].create(
            notification_factory(
                recipient="op-1",
                notification_type=NotificationType.NOTIFICATION_ESCALATION,
                failing=[Channel.EMAIL],
                retry_count=2,
            )
        )

        stats = relay["scheduler"].process_retries()

        assert stats.escalated == 0
        assert relay["store"].get(notice.id).retry_count == 3
        assert relay["store"].get(notice.id).escalated is False

    def test_escalation_resumed_after_store_error(
        self, failing_email_relay, notification_factory, frozen_now, monkeypatch
    ):
        relay = failing_email_relay
        clock = frozen_now()
        store, scheduler = relay["store"], relay["scheduler"]
        record = store.create(notification_factory(failing=[Channel.EMAIL], retry_count=2))
        original = store.mark_escalated
        calls = []

        def mark_escalated(notification_id, at):
            calls.append(notification_id)
            if len(calls) == 1:
                raise NotificationStoreError("throttled")
            return original(notification_id, at)

        monkeypatch.setattr(store, "mark_escalated", mark_escalated)

        first = scheduler.process_retries()
        assert first.escalated == 0
        assert store.get(record.id).retry_count == 3
        assert store.get(record.id).escalated is False

        for _ in range(5):
            clock.advance(hours=1)
            scheduler.process_retries()

        final = store.get(record.id)
        assert final.escalated is True
        assert final.retry_count == 3
        assert final.is_retrying is False
        assert store.unread_count("op-1") == 1
        assert store.unread_count("op-2") == 1
        assert scheduler.metrics.escalations_triggered == 1

    def test_old_records_are_not_retried(self, relay, notification_factory, frozen_now):
        clock = frozen_now()
        relay["store"].create(
            notification_factory(
                failing=[Channel.EMAIL], created_at=clock.now - timedelta(days=8)
            )
        )

        assert relay["scheduler"].process_retries().candidates == 0

    def test_candidates_in_priority_order(
        self, relay, recipient_factory, notification_factory, frozen_now
    ):
        clock = frozen_now()
        relay["directory"].upsert(recipient_factory())
        low = relay["store"].create(
            notification_factory(
                failing=[Channel.EMAIL],
                priority=NotificationPriority.LOW,
                created_at=clock.now - timedelta(hours=2),
            )
        )
        urgent = relay["store"].create(
            notification_factory(
                failing=[Channel.EMAIL],
                priority=NotificationPriority.URGENT,
                created_at=clock.now - timedelta(hours=1),
            )
        )

        relay["scheduler"].process_retries()

        assert relay["channels"][Channel.EMAIL].calls == [urgent.id, low.id]


@pytest.mark.unit
class TestManualRetry:
    def test_ignores_backoff(self, failing_email_relay, notification_factory):
        relay = failing_email_relay
        record = relay["store"].create(
            notification_factory(
                failing=[Channel.EMAIL],
                retry_count=1,
                next_retry_at=utc_now() + timedelta(hours=1),
            )
        )

        attempt = relay["scheduler"].manual_retry(record.id)

        assert attempt.notification.retry_count == 2
        assert not attempt.succeeded
        assert attempt.outcomes[Channel.EMAIL].error == EMAIL_DOWN.error

    def test_unknown_notification(self, relay):
        with pytest.raises(NotificationNotFoundError):
            relay["scheduler"].manual_retry("missing")

    def test_exhausted(self, relay, notification_factory):
        record = relay["store"].create(
            notification_factory(failing=[Channel.EMAIL], retry_count=3)
        )

        with pytest.raises(RetryExhaustedError):
            relay["scheduler"].manual_retry(record.id)

    def test_nothing_failing(self, relay, notification_factory):
        record = relay["store"].create(notification_factory(sent=[Channel.EMAIL]))

        with pytest.raises(NothingToRetryError):
            relay["scheduler"].manual_retry(record.id)

    def test_in_progress(self, relay, notification_factory):
        record = relay["store"].create(notification_factory(failing=[Channel.EMAIL]))
        relay["store"].try_begin_retry(record.id)

        with pytest.raises(RetryInProgressError):
            relay["scheduler"].manual_retry(record.id)

    def test_final_manual_retry_escalates(self, failing_email_relay, notification_factory):
        relay = failing_email_relay
        record = relay["store"].create(
            notification_factory(failing=[Channel.EMAIL], retry_count=2)
        )

        attempt = relay["scheduler"].manual_retry(record.id)

        assert attempt.escalated is True
        assert attempt.notification.escalated is True


@pytest.mark.unit
class TestLifecycleAndHealth:
    def test_start_and_stop_register_one_job(self, relay):
        scheduler = schedule.Scheduler()
        retry = relay["scheduler"]
        wrapped = []

        def wrap(job):
            wrapped.append(job)
            return job

        retry.start(scheduler, wrap=wrap)
        retry.start(scheduler, wrap=wrap)

        assert retry.is_running
        assert len(scheduler.jobs) == 1
        assert scheduler.jobs[0].interval == relay["config"].interval_seconds
        assert wrapped == [retry.process_retries]

        retry.stop()

        assert not retry.is_running
        assert scheduler.jobs == []

    def test_stats_include_config_and_metrics(self, failing_email_relay, frozen_now):
        relay = failing_email_relay
        frozen_now()
        send_task(relay)
        relay["scheduler"].process_retries()

        stats = relay["scheduler"].get_stats()

        assert stats["retries_attempted"] == 1
        assert stats["retries_failed"] == 1
        assert stats["success_rate"] == 0.0
        assert stats["is_running"] is False
        assert stats["config"]["max_retries"] == 3
        assert stats["last_run_at"] is not None

        relay["scheduler"].reset_metrics()

        assert relay["scheduler"].get_stats()["retries_attempted"] == 0

    def test_healthy_by_default(self, relay):
        health = relay["scheduler"].get_health()

        assert health == {
            "status": "healthy",
            "is_running": False,
            "last_run_at": None,
            "issues": [],
        }

    def test_high_failure_rate_is_unhealthy(self, relay):
        metrics = relay["scheduler"].metrics
        for _ in range(11):
            metrics.record_attempt(False)

        health = relay["scheduler"].get_health()

        assert health["status"] == "unhealthy"
        assert health["issues"] == ["retry failure rate is above 50%"]

    def test_few_attempts_are_not_judged(self, relay):
        for _ in range(10):
            relay["scheduler"].metrics.record_attempt(False)

        assert relay["scheduler"].get_health()["status"] == "healthy"

    def test_stale_cycle_is_unhealthy(self, relay):
        retry = relay["scheduler"]
        retry.start(schedule.Scheduler())
        retry.metrics.record_run(utc_now() - timedelta(seconds=retry.config.interval_seconds * 3))

        health = retry.get_health()

        assert health["status"] == "unhealthy"
        assert "retry cycle has not run within twice the interval" in health["issues"]
        retry.stop()


@pytest.mark.unit
def test_metrics_failure_rate():
    metrics = RetryMetrics()
    assert metrics.failure_rate == 0.0

    metrics.record_attempt(True)
    metrics.record_attempt(False)

    assert metrics.failure_rate == 0.5
    assert metrics.snapshot()["success_rate"] == 50.0
