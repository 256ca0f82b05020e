"""Enum definitions shared by the schema and the progress logic."""

import enum

from sqlalchemy import Enum as SQLEnum


class LessonProgressState(str, enum.Enum):
    unstarted = "unstarted"
    in_progress = "in_progress"
    completed = "completed"


class CompletionOutcome(str, enum.Enum):
    """Result of one lesson-completed event."""

    aborted = "aborted"
    course_incomplete = "course_incomplete"
    course_completed = "course_completed"


class NotificationStatus(str, enum.Enum):
    sent = "sent"
    failed = "failed"


notification_status_enum = SQLEnum(
    NotificationStatus,
    name="notification_status",
    create_type=True,
)
