"""
Lesson progress tracking and course completion.

Public API:
    ProgressTracker - periodic position saves for one open lesson video
    on_lesson_completed(...) - record a completed lesson, fire course completion
    get_course_completion(...) / is_course_complete(...) - derived course state
    ViewingSessionRegistry - server-side host for open trackers
"""

from .completion import get_course_completion, is_course_complete, on_lesson_completed
from .errors import (
    AggregationError,
    FetchLessonsError,
    FetchProgressError,
    NotificationDispatchError,
    ProgressError,
    ProgressReadError,
    ProgressWriteError,
)
from .sessions import (
    Notice,
    ViewingSession,
    ViewingSessionNotFound,
    ViewingSessionRegistry,
    clear_session_registry,
    get_session_registry,
)
from .store import DatabaseProgressStore, ProgressStore
from .threshold import completion_percentage, is_watch_complete
from .tracker import ProgressTracker
from .types import CompletionOutcome, CourseCompletion, LessonProgressState, ProgressRecord

__all__ = [
    "AggregationError",
    "CompletionOutcome",
    "CourseCompletion",
    "DatabaseProgressStore",
    "FetchLessonsError",
    "FetchProgressError",
    "LessonProgressState",
    "Notice",
    "NotificationDispatchError",
    "ProgressError",
    "ProgressReadError",
    "ProgressRecord",
    "ProgressStore",
    "ProgressTracker",
    "ProgressWriteError",
    "ViewingSession",
    "ViewingSessionNotFound",
    "ViewingSessionRegistry",
    "clear_session_registry",
    "completion_percentage",
    "get_course_completion",
    "get_session_registry",
    "is_course_complete",
    "is_watch_complete",
    "on_lesson_completed",
]
