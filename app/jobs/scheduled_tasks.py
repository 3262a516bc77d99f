import threading
import time
from typing import Optional

import schedule

from infrastructure.logging import get_module_logger
from modules.notifications.factory import NotificationService

logger = get_module_logger()


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            return job(*args, **kwargs)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "safe_run_error",
                error=str(e),
                function=getattr(job, "__name__", repr(job)),
                module=getattr(job, "__module__", None),
                job_args=args,
                job_kwargs=kwargs,
            )
            return None

    return wrapper


def init(service: NotificationService, scheduler: Optional[schedule.Scheduler] = None):
    """Register the notification retry and cleanup jobs.

    Returns:
        The scheduler holding the jobs.
    """
    scheduler = scheduler or schedule.Scheduler()
    service.retry_scheduler.start(scheduler, wrap=safe_run)
    service.cleanup.start(scheduler, wrap=safe_run)
    scheduler.every(5).minutes.do(safe_run(scheduler_heartbeat), service=service)
    logger.info("scheduled_tasks_initialized", jobs=len(scheduler.get_jobs()))
    return scheduler


def stop(service: NotificationService, scheduler: schedule.Scheduler) -> None:
    """Cancel the notification jobs and clear the scheduler."""
    service.retry_scheduler.stop()
    service.cleanup.stop()
    scheduler.clear()
    logger.info("scheduled_tasks_stopped")


def scheduler_heartbeat(service: NotificationService):
    health = service.retry_scheduler.get_health()
    if health["status"] != "healthy":
        logger.warning("retry_scheduler_unhealthy", issues=health["issues"])
    else:
        logger.info("scheduler_heartbeat", at=time.ctime())


def run_continuously(scheduler: schedule.Scheduler, interval=1):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Missed jobs are not run
    more than once: a job due every minute with an interval
    of one hour runs once per hour.
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        def run(self):
            while not cease_continuous_run.is_set():
                scheduler.run_pending()
                cease_continuous_run.wait(interval)

    continuous_thread = ScheduleThread(daemon=True, name="notification-jobs")
    continuous_thread.start()
    return cease_continuous_run
