"""Progress tracker for a single open lesson video.

One tracker lives for the duration of one lesson view. It seeds itself from
the stored progress row, saves the playback position on a fixed interval and
once more on teardown, and reports the first crossing of the completion
threshold to the caller.

Lifecycle:
    tracker = ProgressTracker(store, viewer, lesson_id=..., course_id=...,
                              video_url=..., on_complete=..., timer=...)
    await tracker.start()        # load stored progress, start interval
    tracker.set_duration(600)
    tracker.set_current_time(42.5)
    await tracker.stop()         # cancel interval, final save
"""

import logging
import math
from typing import Awaitable, Callable
from uuid import UUID

from classroom.constants import SAVE_INTERVAL_SECONDS
from classroom.viewers import Viewer

from .errors import ProgressError
from .store import ProgressStore
from .threshold import is_watch_complete
from .timers import IntervalTimer, SchedulerIntervalTimer, session_job_id
from .types import LessonProgressState, ProgressRecord

logger = logging.getLogger(__name__)

OnComplete = Callable[[], Awaitable[object]]


class ProgressTracker:
    def __init__(
        self,
        store: ProgressStore,
        viewer: Viewer | None,
        *,
        lesson_id: UUID,
        course_id: UUID,
        video_url: str | None,
        on_complete: OnComplete | None = None,
        timer: IntervalTimer | None = None,
        save_interval: float = SAVE_INTERVAL_SECONDS,
    ):
        self.store = store
        self.viewer = viewer
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.video_url = video_url
        self.on_complete = on_complete
        self.save_interval = save_interval

        if timer is None and viewer is not None:
            timer = SchedulerIntervalTimer(
                session_job_id(viewer.user_id, lesson_id, course_id)
            )
        self._timer = timer

        self.current_time: float = 0.0
        self.duration: float = 0.0
        self.completed = False
        self._persisted_position = 0

        self._started = False
        self._closing = False
        self._closed = False

    @property
    def admin_bypass(self) -> bool:
        """Admins browsing content without a completion hook are never tracked."""
        return (
            self.viewer is not None
            and self.viewer.is_administrator
            and self.on_complete is None
        )

    @property
    def active(self) -> bool:
        return self.viewer is not None and bool(self.video_url) and not self.admin_bypass

    @property
    def state(self) -> LessonProgressState:
        if self.completed:
            return LessonProgressState.completed
        if self._persisted_position > 0:
            return LessonProgressState.in_progress
        return LessonProgressState.unstarted

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and self._timer.running

    def set_current_time(self, seconds: float) -> None:
        self.current_time = max(0.0, float(seconds))

    def set_duration(self, seconds: float | None) -> None:
        self.duration = max(0.0, float(seconds or 0))

    async def start(self) -> None:
        """Mount: load stored progress and begin periodic saving."""
        if not self.active or self._started:
            return
        self._started = True

        await self._load()

        if not self.completed and not self._closing:
            self._timer.start(self.save, self.save_interval)

    async def _load(self) -> None:
        try:
            record = await self.store.load_progress(
                self.viewer.user_id, self.lesson_id, self.course_id
            )
        except ProgressError as e:
            logger.warning(f"Error loading progress: {e}")
            return

        if record is None:
            return

        self.current_time = float(record.last_position_seconds)
        self._persisted_position = record.last_position_seconds
        self.completed = record.completed

        # Already complete: the load alone signals the hook. Admin previews
        # never re-fire it for an already completed lesson.
        if record.completed and self.on_complete and not self.viewer.is_administrator:
            await self.on_complete()

    async def save(self) -> bool:
        """
        Persist the current position once.

        Returns True if a row was written. Failures are logged and swallowed;
        the next interval tick is the retry.
        """
        if not self.active or self.completed or self._closed:
            return False

        is_completed = is_watch_complete(self.current_time, self.duration)
        position = int(math.floor(self.current_time))
        record = ProgressRecord(
            user_id=self.viewer.user_id,
            lesson_id=self.lesson_id,
            course_id=self.course_id,
            last_position_seconds=position,
            completed=is_completed,
        )

        try:
            await self.store.upsert_progress(record)
        except ProgressError as e:
            logger.warning(f"Error saving progress: {e}")
            return False

        if self._closed:
            # Torn down while the write was in flight
            return True

        self._persisted_position = position

        if is_completed and not self.completed:
            self.completed = True
            self._timer.cancel()
            logger.info(
                f"Lesson {self.lesson_id} completed by {self.viewer.user_id} at {position}s"
            )
            if self.on_complete:
                await self.on_complete()

        return True

    async def stop(self) -> None:
        """
        Teardown: cancel the interval, then issue the final save.

        The final save is awaited so a clean close keeps the last seconds
        watched. Safe to call more than once.
        """
        if self._closing:
            return
        self._closing = True

        if self._timer is not None:
            self._timer.cancel()

        try:
            if self._started:
                await self.save()
        finally:
            self._closed = True
