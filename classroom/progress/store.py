"""Progress persistence.

Stores one progress row per (user, lesson, course) and answers the two
aggregation queries the course completion check needs. Database errors
are wrapped in the progress error taxonomy so callers can decide which
failures are silent and which are surfaced.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

from classroom.database import get_connection, get_transaction
from classroom.tables import lessons, progress

from .errors import (
    FetchLessonsError,
    FetchProgressError,
    ProgressReadError,
    ProgressWriteError,
)
from .types import ProgressRecord

logger = logging.getLogger(__name__)

# Connection failures surface as OSError from asyncpg before SQLAlchemy wraps them
DATABASE_ERRORS = (SQLAlchemyError, OSError)

PROGRESS_CONFLICT_KEY = ["user_id", "lesson_id", "course_id"]


class ProgressStore(Protocol):
    """Persistence operations used by the tracker and the orchestrator."""

    async def load_progress(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> ProgressRecord | None: ...

    async def upsert_progress(self, record: ProgressRecord) -> None: ...

    async def mark_lesson_complete(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> None: ...

    async def record_lesson_access(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> None: ...

    async def list_published_lessons(self, course_id: UUID) -> list[UUID]: ...

    async def list_completed_lesson_ids(
        self, user_id: UUID, course_id: UUID
    ) -> set[UUID]: ...


def _key_clause(user_id: UUID, lesson_id: UUID, course_id: UUID):
    return and_(
        progress.c.user_id == user_id,
        progress.c.lesson_id == lesson_id,
        progress.c.course_id == course_id,
    )


class DatabaseProgressStore:
    """ProgressStore backed by the PostgreSQL `progress` and `lessons` tables."""

    async def load_progress(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> ProgressRecord | None:
        """Return the stored record for the triple, or None if there is none yet."""
        try:
            async with get_connection() as conn:
                result = await conn.execute(
                    select(progress).where(_key_clause(user_id, lesson_id, course_id))
                )
                row = result.mappings().first()
        except DATABASE_ERRORS as e:
            raise ProgressReadError(
                f"Could not load progress for user {user_id} lesson {lesson_id}"
            ) from e

        return ProgressRecord.from_row(row) if row else None

    async def upsert_progress(self, record: ProgressRecord) -> None:
        """Create the row or overwrite position, completion and access time.

        Uses INSERT ... ON CONFLICT on the (user, lesson, course) key. Position
        is last write wins; `completed` is OR-ed with the stored value so a
        late or racing write can never reset it to false.
        """
        stmt = pg_insert(progress).values(
            user_id=record.user_id,
            lesson_id=record.lesson_id,
            course_id=record.course_id,
            last_position_seconds=record.last_position_seconds,
            completed=record.completed,
            last_accessed_at=record.last_accessed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=PROGRESS_CONFLICT_KEY,
            set_={
                "last_position_seconds": stmt.excluded.last_position_seconds,
                "completed": or_(progress.c.completed, stmt.excluded.completed),
                "last_accessed_at": stmt.excluded.last_accessed_at,
            },
        )

        try:
            async with get_transaction() as conn:
                await conn.execute(stmt)
        except DATABASE_ERRORS as e:
            raise ProgressWriteError(
                f"Could not save progress for user {record.user_id} lesson {record.lesson_id}"
            ) from e

    async def mark_lesson_complete(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> None:
        """Upsert the row with completed = true, keeping any stored position."""
        now = datetime.now(timezone.utc)
        stmt = pg_insert(progress).values(
            user_id=user_id,
            lesson_id=lesson_id,
            course_id=course_id,
            completed=True,
            last_accessed_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=PROGRESS_CONFLICT_KEY,
            set_={"completed": True, "last_accessed_at": now},
        )

        try:
            async with get_transaction() as conn:
                await conn.execute(stmt)
        except DATABASE_ERRORS as e:
            raise ProgressWriteError(
                f"Could not mark lesson {lesson_id} complete for user {user_id}"
            ) from e

    async def record_lesson_access(
        self, user_id: UUID, lesson_id: UUID, course_id: UUID
    ) -> None:
        """Note that the lesson was opened.

        Creates a zero-position row if absent, otherwise only bumps
        last_accessed_at.
        """
        now = datetime.now(timezone.utc)
        stmt = pg_insert(progress).values(
            user_id=user_id,
            lesson_id=lesson_id,
            course_id=course_id,
            last_position_seconds=0,
            completed=False,
            last_accessed_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=PROGRESS_CONFLICT_KEY,
            set_={"last_accessed_at": now},
        )

        try:
            async with get_transaction() as conn:
                await conn.execute(stmt)
        except DATABASE_ERRORS as e:
            raise ProgressWriteError(
                f"Could not record access to lesson {lesson_id} for user {user_id}"
            ) from e

    async def list_published_lessons(self, course_id: UUID) -> list[UUID]:
        """Published lesson ids of a course in display order."""
        try:
            async with get_connection() as conn:
                result = await conn.execute(
                    select(lessons.c.id)
                    .where(
                        and_(
                            lessons.c.course_id == course_id,
                            lessons.c.is_published.is_(True),
                        )
                    )
                    .order_by(lessons.c.sort_order, lessons.c.id)
                )
                return [row.id for row in result]
        except DATABASE_ERRORS as e:
            raise FetchLessonsError(
                f"Could not list lessons for course {course_id}"
            ) from e

    async def list_completed_lesson_ids(
        self, user_id: UUID, course_id: UUID
    ) -> set[UUID]:
        """Lesson ids the user has completed within the course."""
        try:
            async with get_connection() as conn:
                result = await conn.execute(
                    select(progress.c.lesson_id).where(
                        and_(
                            progress.c.user_id == user_id,
                            progress.c.course_id == course_id,
                            progress.c.completed.is_(True),
                        )
                    )
                )
                return {row.lesson_id for row in result}
        except DATABASE_ERRORS as e:
            raise FetchProgressError(
                f"Could not list completed lessons for user {user_id} course {course_id}"
            ) from e
