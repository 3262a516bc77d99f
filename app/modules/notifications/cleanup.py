"""Cleanup of old terminal notification records."""

from typing import Callable, Optional

import schedule

from infrastructure.logging import get_module_logger
from modules.notifications.errors import NotificationStoreError
from modules.notifications.models import utc_now
from modules.notifications.retry import RetryConfig, RetryMetrics
from modules.notifications.store import NotificationStore

logger = get_module_logger()


class CleanupSweeper:
    """Deletes records past the max age that are exhausted or escalated.

    Records still inside their retry budget are kept regardless of age.
    """

    def __init__(
        self,
        store: NotificationStore,
        config: Optional[RetryConfig] = None,
        metrics: Optional[RetryMetrics] = None,
    ):
        self.store = store
        self.config = config or RetryConfig()
        self.metrics = metrics or RetryMetrics()
        self.log = logger.bind(component="cleanup_sweeper")
        self._scheduler: Optional[schedule.Scheduler] = None
        self._job: Optional[schedule.Job] = None

    @property
    def is_running(self) -> bool:
        return self._job is not None

    def start(
        self,
        scheduler: schedule.Scheduler,
        wrap: Optional[Callable[[Callable], Callable]] = None,
    ) -> None:
        if self._job is not None:
            return
        job = wrap(self.run) if wrap else self.run
        self._scheduler = scheduler
        self._job = scheduler.every(self.config.cleanup_interval_seconds).seconds.do(job)
        self.log.info(
            "cleanup_sweeper_started",
            interval_seconds=self.config.cleanup_interval_seconds,
        )

    def stop(self) -> None:
        if self._job is None:
            return
        if self._scheduler is not None:
            self._scheduler.cancel_job(self._job)
        self._job = None
        self._scheduler = None
        self.log.info("cleanup_sweeper_stopped")

    def run(self) -> int:
        """Delete expired terminal records; return how many were removed."""
        now = utc_now()
        cutoff = now - self.config.max_age
        try:
            deleted = self.store.delete_expired(cutoff, self.config.max_retries)
        except NotificationStoreError as e:
            self.log.error("cleanup_failed", error=str(e))
            return 0

        self.metrics.record_cleanup(deleted, now)
        self.log.info("cleanup_completed", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted
