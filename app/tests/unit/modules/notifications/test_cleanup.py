from datetime import timedelta

import pytest
import schedule

from modules.notifications.cleanup import CleanupSweeper
from modules.notifications.errors import NotificationStoreError
from modules.notifications.models import Channel
from modules.notifications.retry import RetryConfig, RetryMetrics


@pytest.fixture
def sweeper(store):
    return CleanupSweeper(store, RetryConfig(max_retries=3, max_age_days=7), RetryMetrics())


@pytest.mark.unit
def test_deletes_only_old_terminal_records(sweeper, store, notification_factory, frozen_now):
    clock = frozen_now()
    old = clock.now - timedelta(days=8)
    exhausted = store.create(
        notification_factory(failing=[Channel.EMAIL], retry_count=3, created_at=old)
    )
    escalated = store.create(
        notification_factory(failing=[Channel.EMAIL], retry_count=1, escalated=True, created_at=old)
    )
    budget_left = store.create(
        notification_factory(failing=[Channel.EMAIL], retry_count=1, created_at=old)
    )
    recent = store.create(
        notification_factory(failing=[Channel.EMAIL], retry_count=3, created_at=clock.now)
    )

    deleted = sweeper.run()

    assert deleted == 2
    assert store.get(exhausted.id) is None
    assert store.get(escalated.id) is None
    assert store.get(budget_left.id) is not None
    assert store.get(recent.id) is not None
    assert sweeper.metrics.notifications_cleaned == 2
    assert sweeper.metrics.last_cleanup_at == clock.now


@pytest.mark.unit
def test_store_failure_returns_zero(sweeper, store, monkeypatch):
    def delete_expired(cutoff, max_retries):
        raise NotificationStoreError("unavailable")

    monkeypatch.setattr(store, "delete_expired", delete_expired)

    assert sweeper.run() == 0
    assert sweeper.metrics.last_cleanup_at is None


@pytest.mark.unit
def test_start_and_stop(sweeper):
    scheduler = schedule.Scheduler()

    sweeper.start(scheduler)

    assert sweeper.is_running
    assert scheduler.jobs[0].interval == 86400

    sweeper.stop()

    assert scheduler.jobs == []
