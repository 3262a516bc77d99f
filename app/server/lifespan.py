"""Application lifespan: build the relay, run its background jobs."""

from contextlib import asynccontextmanager
import sys
import threading
from typing import AsyncIterator, Optional, TYPE_CHECKING

import schedule
from fastapi import FastAPI
from structlog.stdlib import BoundLogger

from infrastructure.logging.setup import configure_logging
from infrastructure.services import get_settings
from jobs import scheduled_tasks
from modules.notifications.factory import NotificationService, build_notification_service

if TYPE_CHECKING:
    from infrastructure.configuration import Settings


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def _log_startup_configuration(settings: "Settings", logger: BoundLogger) -> None:
    logger.info(
        "relay_configuration",
        production=settings.is_production,
        store_backend=settings.store.backend,
        retry_enabled=settings.retry.enabled,
        retry_interval_seconds=settings.retry.interval_seconds,
        max_retries=settings.retry.max_retries,
    )
    for section, keys in settings.section_keys().items():
        logger.debug("configuration_section_loaded", section=section, keys=keys)


def _start_background_jobs(
    service: NotificationService,
    settings: "Settings",
    logger: BoundLogger,
) -> tuple[Optional[schedule.Scheduler], Optional[threading.Event]]:
    # Retry and cleanup both hang off the same switch
    if not settings.retry.enabled:
        logger.info("background_jobs_skipped", reason="retry_disabled")
        return None, None
    if _is_test_environment():
        logger.info("background_jobs_skipped", reason="test_environment")
        return None, None

    scheduler = scheduled_tasks.init(service)
    stop_event = scheduled_tasks.run_continuously(scheduler)
    logger.info("background_jobs_started")
    return scheduler, stop_event


def _stop_background_jobs(
    service: NotificationService,
    scheduler: Optional[schedule.Scheduler],
    stop_event: Optional[threading.Event],
) -> None:
    if stop_event is not None:
        stop_event.set()
    if scheduler is not None:
        scheduled_tasks.stop(service, scheduler)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the notification service onto ``app.state`` for the app's lifetime.

    A service already placed on ``app.state.notifications`` is reused, which
    lets tests inject one built from in-memory stores.
    """
    settings = get_settings()
    logger = configure_logging()
    app.state.settings = settings

    logger.info("relay_startup", git_sha=settings.GIT_SHA)
    _log_startup_configuration(settings, logger)

    service = getattr(app.state, "notifications", None) or build_notification_service(settings)
    app.state.notifications = service

    scheduler, stop_event = _start_background_jobs(service, settings, logger)
    app.state.scheduler = scheduler
    app.state.scheduled_stop_event = stop_event

    yield

    logger.info("relay_shutdown")
    _stop_background_jobs(service, scheduler, stop_event)
