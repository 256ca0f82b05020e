"""Pytest fixtures for progress tests.

Provides an in-memory progress store and a timer that only fires when a
test tells it to, so tracker timing is fully deterministic.
"""

import uuid

import pytest

from classroom.progress.errors import (
    FetchLessonsError,
    FetchProgressError,
    ProgressReadError,
    ProgressWriteError,
)
from classroom.progress.types import ProgressRecord
from classroom.viewers import Viewer


class InMemoryProgressStore:
    """ProgressStore keeping rows in a dict, with switchable failures."""

    def __init__(self):
        self.rows: dict[tuple, ProgressRecord] = {}
        self.published: dict[uuid.UUID, list[uuid.UUID]] = {}
        self.calls: list[str] = []
        self.upserts: list[ProgressRecord] = []
        self.fail_reads = False
        self.fail_writes = False
        self.fail_lessons = False
        self.fail_completed = False

    def seed(self, record: ProgressRecord) -> None:
        self.rows[(record.user_id, record.lesson_id, record.course_id)] = record

    def get(self, user_id, lesson_id, course_id) -> ProgressRecord | None:
        return self.rows.get((user_id, lesson_id, course_id))

    async def load_progress(self, user_id, lesson_id, course_id):
        self.calls.append("load_progress")
        if self.fail_reads:
            raise ProgressReadError("read failed")
        return self.get(user_id, lesson_id, course_id)

    async def upsert_progress(self, record):
        self.calls.append("upsert_progress")
        if self.fail_writes:
            raise ProgressWriteError("write failed")
        self.upserts.append(record)
        key = (record.user_id, record.lesson_id, record.course_id)
        existing = self.rows.get(key)
        completed = record.completed or (existing is not None and existing.completed)
        self.rows[key] = ProgressRecord(
            user_id=record.user_id,
            lesson_id=record.lesson_id,
            course_id=record.course_id,
            last_position_seconds=record.last_position_seconds,
            completed=completed,
            last_accessed_at=record.last_accessed_at,
        )

    async def mark_lesson_complete(self, user_id, lesson_id, course_id):
        self.calls.append("mark_lesson_complete")
        if self.fail_writes:
            raise ProgressWriteError("write failed")
        existing = self.get(user_id, lesson_id, course_id)
        self.rows[(user_id, lesson_id, course_id)] = ProgressRecord(
            user_id=user_id,
            lesson_id=lesson_id,
            course_id=course_id,
            last_position_seconds=existing.last_position_seconds if existing else 0,
            completed=True,
        )

    async def record_lesson_access(self, user_id, lesson_id, course_id):
        self.calls.append("record_lesson_access")
        if self.fail_writes:
            raise ProgressWriteError("write failed")
        if self.get(user_id, lesson_id, course_id) is None:
            self.seed(ProgressRecord(user_id, lesson_id, course_id))

    async def list_published_lessons(self, course_id):
        self.calls.append("list_published_lessons")
        if self.fail_lessons:
            raise FetchLessonsError("lessons failed")
        return list(self.published.get(course_id, []))

    async def list_completed_lesson_ids(self, user_id, course_id):
        self.calls.append("list_completed_lesson_ids")
        if self.fail_completed:
            raise FetchProgressError("progress failed")
        return {
            lesson_id
            for (uid, lesson_id, cid), record in self.rows.items()
            if uid == user_id and cid == course_id and record.completed
        }


class ManualTimer:
    """IntervalTimer that fires only via tick()."""

    def __init__(self, job_id: str = "manual"):
        self.job_id = job_id
        self.callback = None
        self.interval = None
        self.running = False
        self.start_count = 0
        self.cancel_count = 0

    def start(self, callback, interval_seconds):
        self.callback = callback
        self.interval = interval_seconds
        self.running = True
        self.start_count += 1

    def cancel(self):
        self.cancel_count += 1
        self.running = False

    async def tick(self):
        if self.running:
            return await self.callback()


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def viewer():
    return Viewer(user_id=uuid.uuid4())


@pytest.fixture
def admin():
    return Viewer(user_id=uuid.uuid4(), is_administrator=True)


@pytest.fixture
def course_id():
    return uuid.uuid4()


@pytest.fixture
def lesson_id():
    return uuid.uuid4()


@pytest.fixture
def timers():
    """ManualTimers created through timer_factory, keyed by job id."""
    return {}


@pytest.fixture
def timer_factory(timers):
    def factory(job_id):
        timers[job_id] = ManualTimer(job_id)
        return timers[job_id]

    return factory
