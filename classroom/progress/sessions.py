"""Viewing sessions: server-side hosts for progress trackers.

A viewer's player opens a session when a lesson is shown, streams time
updates into it and closes it when the lesson is left. Each viewer has at
most one open session; opening another lesson closes (and flushes) the
previous one. Sessions whose player stops sending updates (crashed tab,
dropped close beacon) are closed by the idle sweep.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable
from uuid import UUID

from classroom.constants import SAVE_INTERVAL_SECONDS, SESSION_IDLE_TIMEOUT_SECONDS
from classroom.viewers import Viewer

from .completion import on_lesson_completed
from .errors import NotificationDispatchError, ProgressError
from .store import ProgressStore
from .timers import IntervalTimer, SchedulerIntervalTimer, session_job_id
from .tracker import ProgressTracker
from .types import CompletionOutcome

logger = logging.getLogger(__name__)

TimerFactory = Callable[[str], IntervalTimer]

SWEEP_JOB_ID = "viewing_session_sweep"


@dataclass(frozen=True)
class Notice:
    """A message for the viewer, shown by the frontend as a toast."""

    title: str
    description: str
    variant: str = "default"


COURSE_COMPLETED_NOTICE = Notice(
    title="Course completed!",
    description=(
        "Congratulations! You've completed the course. "
        "A certificate has been sent to your email."
    ),
)

COMPLETION_FAILED_NOTICE = Notice(
    title="Error",
    description="Failed to process course completion. Please try again later.",
    variant="destructive",
)


class ViewingSessionNotFound(LookupError):
    pass


@dataclass
class ViewingSession:
    viewer: Viewer
    course_id: UUID
    lesson_id: UUID
    tracker: ProgressTracker | None = None
    notices: list[Notice] = field(default_factory=list)
    outcome: CompletionOutcome | None = None
    # Registry clock reading of the last open or player update
    last_seen: float = 0.0

    def drain_notices(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices


class ViewingSessionRegistry:
    def __init__(
        self,
        store: ProgressStore,
        notify: Callable[[UUID, UUID], Awaitable[bool]],
        timer_factory: TimerFactory = SchedulerIntervalTimer,
        idle_timeout: float = SESSION_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.notify = notify
        self.timer_factory = timer_factory
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[UUID, ViewingSession] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._sweep_timer: IntervalTimer | None = None

    def __len__(self) -> int:
        return len(self._sessions)

    def _viewer_lock(self, user_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def get(self, viewer: Viewer, course_id: UUID, lesson_id: UUID) -> ViewingSession:
        session = self._sessions.get(viewer.user_id)
        if (
            session is None
            or session.course_id != course_id
            or session.lesson_id != lesson_id
        ):
            raise ViewingSessionNotFound(
                f"No open session for lesson {lesson_id} in course {course_id}"
            )
        return session

    async def open(
        self,
        viewer: Viewer,
        *,
        course_id: UUID,
        lesson_id: UUID,
        video_url: str | None,
        track_completion: bool = True,
    ) -> ViewingSession:
        """
        Start tracking a lesson for the viewer.

        Opens for the same viewer run one at a time, so a rapid lesson
        switch always stops the session it replaces.

        Args:
            track_completion: Whether lesson completion should run the course
                completion workflow. Admins opening a lesson without it are
                not tracked at all.
        """
        async with self._viewer_lock(viewer.user_id):
            previous = self._sessions.pop(viewer.user_id, None)
            if previous is not None:
                await previous.tracker.stop()

            if not viewer.is_administrator:
                try:
                    await self.store.record_lesson_access(
                        viewer.user_id, lesson_id, course_id
                    )
                except ProgressError as e:
                    # Only logged; the lesson still opens
                    logger.warning(f"Error recording lesson access: {e}")

            session = ViewingSession(
                viewer=viewer,
                course_id=course_id,
                lesson_id=lesson_id,
                last_seen=self._clock(),
            )

            async def handle_lesson_completed():
                await self._lesson_completed(session)

            session.tracker = ProgressTracker(
                self.store,
                viewer,
                lesson_id=lesson_id,
                course_id=course_id,
                video_url=video_url,
                on_complete=handle_lesson_completed if track_completion else None,
                timer=self.timer_factory(
                    session_job_id(viewer.user_id, lesson_id, course_id)
                ),
            )
            self._sessions[viewer.user_id] = session

            await session.tracker.start()
            return session

    async def update(
        self,
        viewer: Viewer,
        course_id: UUID,
        lesson_id: UUID,
        *,
        current_time: float,
        duration: float | None = None,
    ) -> ViewingSession:
        """Forward a player time update to the open session."""
        session = self.get(viewer, course_id, lesson_id)
        session.last_seen = self._clock()
        session.tracker.set_current_time(current_time)
        if duration is not None:
            session.tracker.set_duration(duration)
        return session

    async def close(
        self, viewer: Viewer, course_id: UUID, lesson_id: UUID
    ) -> ViewingSession:
        """Stop the session's tracker; its final save is awaited."""
        async with self._viewer_lock(viewer.user_id):
            session = self.get(viewer, course_id, lesson_id)
            del self._sessions[viewer.user_id]
            await session.tracker.stop()
            return session

    async def close_all(self) -> None:
        """Flush every open session (shutdown)."""
        if self._sweep_timer is not None:
            self._sweep_timer.cancel()
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.tracker.stop()

    def start_idle_sweep(self) -> None:
        """Check for idle sessions once per save interval."""
        if self._sweep_timer is None:
            self._sweep_timer = self.timer_factory(SWEEP_JOB_ID)
        if not self._sweep_timer.running:
            self._sweep_timer.start(self.expire_idle, SAVE_INTERVAL_SECONDS)

    async def expire_idle(self) -> int:
        """
        Close sessions with no player update within idle_timeout.

        Each expired tracker gets its final save. Returns the number closed.
        """
        cutoff = self._clock() - self.idle_timeout
        idle = [s for s in self._sessions.values() if s.last_seen < cutoff]

        closed = 0
        for session in idle:
            user_id = session.viewer.user_id
            # Replaced by a newer open while an earlier stop was awaited
            if self._sessions.get(user_id) is not session:
                continue
            del self._sessions[user_id]
            logger.info(
                f"Closing idle session of {user_id} on lesson {session.lesson_id}"
            )
            await session.tracker.stop()
            closed += 1

        return closed

    async def _lesson_completed(self, session: ViewingSession) -> None:
        async def notify(user_id: UUID, course_id: UUID) -> None:
            if await self.notify(user_id, course_id):
                session.notices.append(COURSE_COMPLETED_NOTICE)

        try:
            session.outcome = await on_lesson_completed(
                self.store,
                notify,
                session.viewer.user_id,
                session.course_id,
                session.lesson_id,
            )
        except NotificationDispatchError as e:
            logger.error(f"Error marking course as completed: {e}")
            session.notices.append(COMPLETION_FAILED_NOTICE)


_registry: ViewingSessionRegistry | None = None


def get_session_registry() -> ViewingSessionRegistry:
    """Process-wide registry backed by the database and the completion email."""
    global _registry
    if _registry is None:
        from classroom.notifications import notify_course_completed
        from .store import DatabaseProgressStore

        _registry = ViewingSessionRegistry(
            DatabaseProgressStore(), notify_course_completed
        )
    return _registry


def clear_session_registry() -> None:
    global _registry
    _registry = None
