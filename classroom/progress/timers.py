"""Interval timers driving periodic progress saves.

The tracker only talks to the IntervalTimer protocol, so tests can swap in
a timer they advance by hand.
"""

import logging
from typing import Awaitable, Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from classroom.scheduler import get_scheduler

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[object]]


class IntervalTimer(Protocol):
    """Start/cancel contract for a repeating callback."""

    @property
    def running(self) -> bool: ...

    def start(self, callback: TimerCallback, interval_seconds: float) -> None: ...

    def cancel(self) -> None: ...


class SchedulerIntervalTimer:
    """IntervalTimer backed by an APScheduler interval job."""

    def __init__(self, job_id: str, scheduler: BaseScheduler | None = None):
        self.job_id = job_id
        self._scheduler = scheduler
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _get_scheduler(self) -> BaseScheduler:
        if self._scheduler is None:
            self._scheduler = get_scheduler()
        return self._scheduler

    def start(self, callback: TimerCallback, interval_seconds: float) -> None:
        self._get_scheduler().add_job(
            callback,
            trigger="interval",
            seconds=interval_seconds,
            id=self.job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._running = True
        logger.debug(f"Started interval job {self.job_id} every {interval_seconds}s")

    def cancel(self) -> None:
        if not self._running:
            return
        self._running = False
        try:
            self._get_scheduler().remove_job(self.job_id)
        except JobLookupError:
            pass  # Already removed


def session_job_id(user_id, lesson_id, course_id) -> str:
    return f"progress_{user_id}_{course_id}_{lesson_id}"
