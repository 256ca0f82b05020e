"""Data types for lesson progress and course completion."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from classroom.enums import CompletionOutcome, LessonProgressState

__all__ = [
    "CompletionOutcome",
    "CourseCompletion",
    "LessonProgressState",
    "ProgressRecord",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProgressRecord:
    """One stored row per (user, lesson, course)."""

    user_id: UUID
    lesson_id: UUID
    course_id: UUID
    last_position_seconds: int = 0
    completed: bool = False
    last_accessed_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.last_position_seconds < 0:
            raise ValueError("last_position_seconds must be non-negative")

    @property
    def state(self) -> LessonProgressState:
        if self.completed:
            return LessonProgressState.completed
        if self.last_position_seconds > 0:
            return LessonProgressState.in_progress
        return LessonProgressState.unstarted

    @classmethod
    def from_row(cls, row) -> "ProgressRecord":
        return cls(
            user_id=row["user_id"],
            lesson_id=row["lesson_id"],
            course_id=row["course_id"],
            last_position_seconds=row["last_position_seconds"] or 0,
            completed=bool(row["completed"]),
            last_accessed_at=row["last_accessed_at"],
        )


@dataclass(frozen=True)
class CourseCompletion:
    """Course completion derived from published lessons and completed rows.

    Never stored; recomputed on every check.
    """

    total_lessons: int
    completed_lessons: int

    @property
    def is_complete(self) -> bool:
        # A course without published lessons can never be complete
        return self.total_lessons > 0 and self.completed_lessons == self.total_lessons

    @property
    def percentage(self) -> int:
        if self.total_lessons == 0:
            return 0
        return round(self.completed_lessons / self.total_lessons * 100)
