import threading
from datetime import timedelta

import pytest

from modules.notifications.models import (
    Channel,
    ChannelState,
    NotificationPriority,
    utc_now,
)

MAX_AGE = timedelta(days=7)


@pytest.mark.unit
class TestInMemoryNotificationStore:
    def test_create_and_get_return_copies(self, store, notification_factory):
        record = store.create(notification_factory(failing=[Channel.EMAIL]))
        record.title = "changed"

        stored = store.get(record.id)
        assert stored.title == "New task"
        assert store.get("missing") is None

    def test_update_channel_replaces_one_channel(self, store, notification_factory):
        record = store.create(notification_factory(failing=[Channel.EMAIL, Channel.PUSH]))

        store.update_channel(record.id, Channel.EMAIL, ChannelState.delivered())

        stored = store.get(record.id)
        assert stored.channels.email.sent is True
        assert stored.channels.push.is_failing

    def test_update_channel_on_missing_record_is_ignored(self, store):
        store.update_channel("missing", Channel.EMAIL, ChannelState.delivered())

    def test_retry_candidates_ordered_by_priority_then_age(self, store, notification_factory):
        now = utc_now()
        old_low = store.create(
            notification_factory(
                failing=[Channel.EMAIL],
                priority=NotificationPriority.LOW,
                created_at=now - timedelta(hours=3),
            )
        )
        new_urgent = store.create(
            notification_factory(
                failing=[Channel.EMAIL],
                priority=NotificationPriority.URGENT,
                created_at=now - timedelta(hours=1),
            )
        )
        old_urgent = store.create(
            notification_factory(
                failing=[Channel.EMAIL],
                priority=NotificationPriority.URGENT,
                created_at=now - timedelta(hours=2),
            )
        )
        store.create(notification_factory(sent=[Channel.EMAIL]))

        candidates = store.find_retry_candidates(now, 3, MAX_AGE, limit=10)

        assert [c.id for c in candidates] == [old_urgent.id, new_urgent.id, old_low.id]

    def test_retry_candidates_capped_by_limit(self, store, notification_factory):
        for _ in range(5):
            store.create(notification_factory(failing=[Channel.EMAIL]))

        assert len(store.find_retry_candidates(utc_now(), 3, MAX_AGE, limit=2)) == 2

    def test_try_begin_retry_is_exclusive(self, store, notification_factory):
        record = store.create(notification_factory(failing=[Channel.EMAIL]))

        assert store.try_begin_retry(record.id) is True
        assert store.try_begin_retry(record.id) is False
        store.release_retry(record.id)
        assert store.try_begin_retry(record.id) is True
        assert store.try_begin_retry("missing") is False

    def test_concurrent_try_begin_retry_has_one_winner(self, store, notification_factory):
        record = store.create(notification_factory(failing=[Channel.EMAIL]))
        barrier = threading.Barrier(8)
        wins = []

        def contend():
            barrier.wait()
            wins.append(store.try_begin_retry(record.id))

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert wins.count(True) == 1

    def test_complete_retry_writes_results_and_releases_guard(
        self, store, notification_factory
    ):
        record = store.create(notification_factory(failing=[Channel.EMAIL, Channel.PUSH]))
        store.try_begin_retry(record.id)
        due = utc_now() + timedelta(minutes=2)

        updated = store.complete_retry(
            record.id,
            {
                Channel.EMAIL: ChannelState.delivered(),
                Channel.PUSH: ChannelState.failed("no device"),
            },
            retry_count=1,
            next_retry_at=due,
        )

        assert updated.retry_count == 1
        assert updated.next_retry_at == due
        assert updated.is_retrying is False
        assert updated.channels.email.sent and updated.channels.email.error is None
        assert updated.channels.push.error == "no device"

    def test_mark_escalated_succeeds_once(self, store, notification_factory):
        record = store.create(notification_factory(failing=[Channel.EMAIL]))
        now = utc_now()

        assert store.mark_escalated(record.id, now) is True
        assert store.mark_escalated(record.id, now) is False
        stored = store.get(record.id)
        assert stored.escalated and stored.escalated_at == now

    def test_delete_expired_only_removes_old_terminal_records(
        self, store, notification_factory
    ):
        now = utc_now()
        old = now - timedelta(days=8)
        escalated = store.create(
            notification_factory(failing=[Channel.EMAIL], escalated=True, created_at=old)
        )
        exhausted = store.create(
            notification_factory(failing=[Channel.EMAIL], retry_count=3, created_at=old)
        )
        pending = store.create(
            notification_factory(failing=[Channel.EMAIL], retry_count=1, created_at=old)
        )
        recent = store.create(notification_factory(escalated=True))

        deleted = store.delete_expired(now - MAX_AGE, max_retries=3)

        assert deleted == 2
        assert store.get(escalated.id) is None
        assert store.get(exhausted.id) is None
        assert store.get(pending.id) is not None
        assert store.get(recent.id) is not None

    def test_mark_read_and_unread_count(self, store, notification_factory):
        first = store.create(notification_factory())
        store.create(notification_factory())
        store.create(notification_factory(recipient="someone-else"))

        assert store.unread_count("user-1") == 2
        assert store.mark_read("user-1", [first.id, "unknown"], utc_now()) == 1
        assert store.unread_count("user-1") == 1
        assert store.mark_read("user-1", None, utc_now()) == 1
        assert store.unread_count("user-1") == 0
        assert store.get(first.id).read_at is not None
