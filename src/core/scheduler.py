"""Tick-driven scheduler for template regeneration and daily reminders."""

import logging
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.clock import Clock, system_clock
from src.core.config import constants, settings
from src.core.recurrence import get_zone
from src.core.scheduler_tracker import JobTracker, job_tracker, retry_job_with_backoff
from src.interface.push_sender import PushDispatcher
from src.services import notification_service, template_service


logger = logging.getLogger(__name__)

TICK_JOB_ID = "scheduler_tick"
NOTIFICATION_JOB = "notification_pass"
REGENERATION_JOB = "regeneration_pass"
TRACKED_JOBS = (NOTIFICATION_JOB, REGENERATION_JOB)


def is_regeneration_minute(now: datetime) -> bool:
    """Whether the app-zone wall clock shows the daily regeneration time."""
    local_now = now.astimezone(get_zone(settings.app_timezone))
    return local_now.hour == constants.REGENERATION_HOUR and local_now.minute == constants.REGENERATION_MINUTE


class TaskScheduler:
    """Owns the periodic tick. Created and started by the application lifespan.

    Each tick runs the notification pass, then, at app-zone midnight, the
    regeneration pass. Ticks never overlap: a tick still running when the
    next one is due causes that one to be skipped.
    """

    def __init__(
        self,
        *,
        dispatcher: PushDispatcher,
        clock: Clock = system_clock,
        tick_seconds: int | None = None,
        tracker: JobTracker | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._clock = clock
        self._tick_seconds = tick_seconds or settings.scheduler_tick_seconds
        self._tracker = tracker or job_tracker
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Register the tick job and start the scheduler. A second call does nothing.

        Must be called with an asyncio event loop running.
        """
        if self.is_running:
            logger.debug("Scheduler already running")
            return

        logger.info("Starting scheduler", extra={"tick_seconds": self._tick_seconds})
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._tick_seconds),
            id=TICK_JOB_ID,
            name="Scheduler tick",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started successfully")

    def stop(self) -> None:
        """Remove the tick job and shut the scheduler down without waiting."""
        if self._scheduler is None:
            return

        logger.info("Stopping scheduler")
        if self._scheduler.get_job(TICK_JOB_ID) is not None:
            self._scheduler.remove_job(TICK_JOB_ID)
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    async def _notification_pass(self) -> None:
        await notification_service.run_notification_pass(clock=self._clock, dispatcher=self._dispatcher)

    async def _regeneration_pass(self) -> None:
        await template_service.run_regeneration_pass(clock=self._clock)

    async def tick(self) -> dict[str, bool]:
        """Run one tick.

        Returns:
            Job name to success flag for every pass that ran
        """
        now = self._clock.now()
        results = {
            NOTIFICATION_JOB: await retry_job_with_backoff(
                self._notification_pass,
                NOTIFICATION_JOB,
                tracker=self._tracker,
            )
        }

        if is_regeneration_minute(now):
            results[REGENERATION_JOB] = await retry_job_with_backoff(
                self._regeneration_pass,
                REGENERATION_JOB,
                tracker=self._tracker,
            )

        return results

    def get_status(self) -> dict[str, Any]:
        """Scheduler state, per-pass history and dead letter queue for health checks."""
        return {
            "running": self.is_running,
            "tick_seconds": self._tick_seconds,
            "jobs": {name: self._tracker.get_job_status(name) for name in TRACKED_JOBS},
            "dead_letter_queue": self._tracker.get_dead_letter_queue(),
        }
