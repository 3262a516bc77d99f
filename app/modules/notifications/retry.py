"""Notification retry scheduler.

Periodically re-delivers notifications whose channels failed, with
exponential backoff between cycles, and hands records that exhaust their
retry budget to the escalation policy.

Per-record isolation:
- a record is only processed after ``store.try_begin_retry`` wins the
  ``is_retrying`` guard
- the cycle's results, the incremented ``retry_count``, the next due time
  and the guard release are written in one merge
- any failure on one record releases its guard and the cycle moves on
"""

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import schedule

from infrastructure.configuration.features.retry import NotificationRetrySettings
from infrastructure.logging import bind_notification_context, get_module_logger
from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.errors import (
    NotificationNotFoundError,
    NotificationStoreError,
    NothingToRetryError,
    RecipientNotFoundError,
    RetryExhaustedError,
    RetryInProgressError,
)
from modules.notifications.escalation import EscalationPolicy
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    Notification,
    utc_now,
)
from modules.notifications.store import NotificationStore

logger = get_module_logger()

HEALTH_MIN_ATTEMPTS = 10
HEALTH_MAX_FAILURE_RATE = 0.5


@dataclass
class RetryConfig:
    """Retry scheduler configuration.

    Attributes:
        interval_seconds: Seconds between retry cycles
        max_retries: Cycles allowed before escalation
        backoff_multiplier: Exponential base, must be greater than 1
        base_delay_seconds: Backoff unit
        batch_size: Candidates processed per cycle
        max_age_days: Retry window and cleanup age
        cleanup_interval_seconds: Seconds between cleanup sweeps
    """

    interval_seconds: int = 300
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    base_delay_seconds: int = 60
    batch_size: int = 100
    max_age_days: int = 7
    cleanup_interval_seconds: int = 86400

    def __post_init__(self) -> None:
        if self.interval_seconds < 1:
            raise ValueError("interval_seconds must be at least 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be greater than 1")
        if self.base_delay_seconds < 1:
            raise ValueError("base_delay_seconds must be at least 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_age_days < 1:
            raise ValueError("max_age_days must be at least 1")

    @classmethod
    def from_settings(cls, settings: NotificationRetrySettings) -> "RetryConfig":
        return cls(
            interval_seconds=settings.interval_seconds,
            max_retries=settings.max_retries,
            backoff_multiplier=settings.backoff_multiplier,
            base_delay_seconds=settings.base_delay_seconds,
            batch_size=settings.batch_size,
            max_age_days=settings.max_age_days,
            cleanup_interval_seconds=settings.cleanup_interval_seconds,
        )

    @property
    def max_age(self) -> timedelta:
        return timedelta(days=self.max_age_days)

    def next_retry_at(self, now: datetime, retry_count: int) -> Optional[datetime]:
        """Due time after ``retry_count`` cycles, or None once exhausted."""
        if retry_count >= self.max_retries:
            return None
        delay = self.backoff_multiplier**retry_count * self.base_delay_seconds
        return now + timedelta(seconds=delay)


class RetryMetrics:
    """Lock-protected counters shared by the retry scheduler and cleanup sweeper."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.retries_attempted = 0
            self.retries_succeeded = 0
            self.retries_failed = 0
            self.escalations_triggered = 0
            self.notifications_cleaned = 0
            self.last_run_at: Optional[datetime] = None
            self.last_cleanup_at: Optional[datetime] = None

    def record_run(self, at: datetime) -> None:
        with self._lock:
            self.last_run_at = at

    def record_attempt(self, succeeded: bool) -> None:
        with self._lock:
            self.retries_attempted += 1
            if succeeded:
                self.retries_succeeded += 1
            else:
                self.retries_failed += 1

    def record_escalation(self) -> None:
        with self._lock:
            self.escalations_triggered += 1

    def record_cleanup(self, count: int, at: datetime) -> None:
        with self._lock:
            self.notifications_cleaned += count
            self.last_cleanup_at = at

    @property
    def failure_rate(self) -> float:
        with self._lock:
            if not self.retries_attempted:
                return 0.0
            return self.retries_failed / self.retries_attempted

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            attempted = self.retries_attempted
            return {
                "retries_attempted": attempted,
                "retries_succeeded": self.retries_succeeded,
                "retries_failed": self.retries_failed,
                "escalations_triggered": self.escalations_triggered,
                "notifications_cleaned": self.notifications_cleaned,
                "success_rate": (
                    round(self.retries_succeeded / attempted * 100, 2) if attempted else 0.0
                ),
                "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
                "last_cleanup_at": (
                    self.last_cleanup_at.isoformat() if self.last_cleanup_at else None
                ),
            }


@dataclass
class RetryCycleStats:
    """Counters for one ``process_retries`` cycle."""

    candidates: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    escalated: int = 0
    errors: int = 0


@dataclass
class RetryAttempt:
    """Result of retrying one notification."""

    notification: Notification
    outcomes: Dict[Channel, DeliveryOutcome] = field(default_factory=dict)
    escalated: bool = False

    @property
    def succeeded(self) -> bool:
        return all(outcome.success for outcome in self.outcomes.values())


class RetryScheduler:
    """Background retry loop for failed notification channels.

    Attributes:
        store: NotificationStore holding the records
        dispatcher: NotificationDispatcher re-delivering failed channels
        escalation: EscalationPolicy for exhausted records
        config: RetryConfig controlling interval, budget and backoff
        metrics: RetryMetrics shared with the cleanup sweeper
    """

    def __init__(
        self,
        store: NotificationStore,
        dispatcher: NotificationDispatcher,
        escalation: EscalationPolicy,
        config: Optional[RetryConfig] = None,
        metrics: Optional[RetryMetrics] = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.escalation = escalation
        self.config = config or RetryConfig()
        self.metrics = metrics or RetryMetrics()
        self.log = logger.bind(component="retry_scheduler")
        self._scheduler: Optional[schedule.Scheduler] = None
        self._job: Optional[schedule.Job] = None
        self._started_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._job is not None

    def start(
        self,
        scheduler: schedule.Scheduler,
        wrap: Optional[Callable[[Callable], Callable]] = None,
    ) -> None:
        """Register the retry cycle on ``scheduler``. Idempotent.

        Args:
            scheduler: Scheduler pumped by the jobs thread
            wrap: Optional decorator applied to the job (error containment)
        """
        if self._job is not None:
            return
        job = wrap(self.process_retries) if wrap else self.process_retries
        self._scheduler = scheduler
        self._job = scheduler.every(self.config.interval_seconds).seconds.do(job)
        self._started_at = utc_now()
        self.log.info(
            "retry_scheduler_started",
            interval_seconds=self.config.interval_seconds,
            max_retries=self.config.max_retries,
        )

    def stop(self) -> None:
        if self._job is None:
            return
        if self._scheduler is not None:
            self._scheduler.cancel_job(self._job)
        self._job = None
        self._scheduler = None
        self.log.info("retry_scheduler_stopped")

    def process_retries(self) -> RetryCycleStats:
        """Run one retry cycle over due candidates."""
        now = utc_now()
        self.metrics.record_run(now)
        stats = RetryCycleStats()

        try:
            candidates = self.store.find_retry_candidates(
                now,
                self.config.max_retries,
                self.config.max_age,
                self.config.batch_size,
            )
        except NotificationStoreError as e:
            self.log.error("retry_candidate_query_failed", error=str(e))
            return stats

        stats.candidates = len(candidates)
        if not candidates:
            self.log.debug("retry_cycle_no_candidates")
            return stats

        for candidate in candidates:
            with bind_notification_context(
                notification_id=candidate.id, recipient=candidate.recipient
            ):
                self._process_candidate(candidate.id, now, stats)

        self.log.info("retry_cycle_completed", **asdict(stats))
        return stats

    def _process_candidate(self, notification_id: str, now: datetime, stats: RetryCycleStats) -> None:
        try:
            if not self.store.try_begin_retry(notification_id):
                self.log.debug("retry_record_skipped_guard_held")
                stats.skipped += 1
                return
        except NotificationStoreError as e:
            self.log.error("retry_guard_failed", error=str(e))
            stats.errors += 1
            return

        try:
            attempt = self._retry_record(notification_id, now)
        except Exception as e:  # pylint: disable=broad-except
            self.log.error("retry_record_failed", error=str(e), exc_info=True)
            stats.errors += 1
            self._release(notification_id)
            return

        if attempt is None:
            stats.skipped += 1
            return

        stats.processed += 1
        if attempt.succeeded:
            stats.succeeded += 1
        else:
            stats.failed += 1
        if attempt.escalated:
            stats.escalated += 1

    def manual_retry(self, notification_id: str) -> RetryAttempt:
        """Retry one notification's failing channels now, ignoring backoff.

        Raises:
            NotificationNotFoundError: no such record
            RetryExhaustedError: retry budget already used
            NothingToRetryError: no channel is failing
            RetryInProgressError: another cycle holds the retry guard
        """
        notification = self.store.get(notification_id)
        if notification is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        if notification.retry_count >= self.config.max_retries or notification.escalated:
            raise RetryExhaustedError(
                f"Notification {notification_id} has exhausted its retries"
            )
        if not notification.failing_channels:
            raise NothingToRetryError(f"Notification {notification_id} has no failed channel")
        if notification.is_retrying or not self.store.try_begin_retry(notification_id):
            raise RetryInProgressError(f"Notification {notification_id} is being retried")

        with bind_notification_context(
            notification_id=notification.id, recipient=notification.recipient
        ):
            self.log.info("manual_retry_requested")
            try:
                attempt = self._retry_record(notification_id, utc_now())
            except Exception:
                self._release(notification_id)
                raise

        if attempt is None:
            raise NothingToRetryError(
                f"Notification {notification_id} is no longer eligible for retry"
            )
        return attempt

    def _retry_record(self, notification_id: str, now: datetime) -> Optional[RetryAttempt]:
        """Retry a record whose guard is held. None if it stopped being eligible."""
        notification = self.store.get(notification_id)
        if notification is None:
            return None

        if notification.awaits_escalation(self.config.max_retries):
            self._release(notification_id)
            return self._escalate_exhausted(notification)

        failing = notification.failing_channels
        if (
            not failing
            or notification.escalated
            or notification.retry_count >= self.config.max_retries
        ):
            self._release(notification_id)
            return None

        try:
            outcomes = self.dispatcher.retry_channels(notification, failing)
        except RecipientNotFoundError as e:
            outcomes = {
                channel: DeliveryOutcome.failure(str(e), permanent=True)
                for channel in failing
            }

        retry_count = notification.retry_count + 1
        next_retry_at = self.config.next_retry_at(now, retry_count)
        updated = self.store.complete_retry(
            notification_id,
            {channel: outcome.to_state(now) for channel, outcome in outcomes.items()},
            retry_count,
            next_retry_at,
        )

        attempt = RetryAttempt(notification=updated, outcomes=outcomes)
        self.metrics.record_attempt(attempt.succeeded)
        self.log.info(
            "notification_retried",
            retry_count=retry_count,
            channels=[channel.value for channel in failing],
            still_failing=[channel.value for channel in updated.failing_channels],
            next_retry_at=next_retry_at.isoformat() if next_retry_at else None,
        )

        if updated.awaits_escalation(self.config.max_retries):
            self._escalate(attempt)
        return attempt

    def _escalate_exhausted(self, notification: Notification) -> RetryAttempt:
        """Escalate a record whose escalation did not get recorded last cycle."""
        self.log.info("retry_escalation_resumed", retry_count=notification.retry_count)
        attempt = RetryAttempt(
            notification=notification,
            outcomes={
                channel: DeliveryOutcome.failure(
                    notification.channels.get(channel).error or "delivery failed"
                )
                for channel in notification.failing_channels
            },
        )
        self._escalate(attempt)
        return attempt

    def _escalate(self, attempt: RetryAttempt) -> None:
        result = self.escalation.escalate(attempt.notification)
        if not result.escalated:
            return
        attempt.escalated = True
        self.metrics.record_escalation()
        refreshed = self.store.get(attempt.notification.id)
        if refreshed is not None:
            attempt.notification = refreshed

    def _release(self, notification_id: str) -> None:
        try:
            self.store.release_retry(notification_id)
        except NotificationStoreError as e:
            self.log.error(
                "retry_guard_release_failed",
                notification_id=notification_id,
                error=str(e),
            )

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.metrics.snapshot(),
            "is_running": self.is_running,
            "config": asdict(self.config),
        }

    def reset_metrics(self) -> None:
        self.metrics.reset()
        self.log.info("retry_metrics_reset")

    def get_health(self) -> Dict[str, Any]:
        """Health summary with the reasons it is unhealthy, if any.

        Unhealthy when the loop is running but no cycle ran within twice the
        interval, or when more than half the retries failed after more than
        ten attempts.
        """
        issues: List[str] = []
        snapshot = self.metrics.snapshot()

        if self.is_running:
            last = self.metrics.last_run_at or self._started_at
            window = timedelta(seconds=self.config.interval_seconds * 2)
            if last is not None and utc_now() - last > window:
                issues.append("retry cycle has not run within twice the interval")

        if (
            snapshot["retries_attempted"] > HEALTH_MIN_ATTEMPTS
            and self.metrics.failure_rate > HEALTH_MAX_FAILURE_RATE
        ):
            issues.append("retry failure rate is above 50%")

        return {
            "status": "unhealthy" if issues else "healthy",
            "is_running": self.is_running,
            "last_run_at": snapshot["last_run_at"],
            "issues": issues,
        }
