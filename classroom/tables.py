"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from .enums import notification_status_enum

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. PROFILES
# =====================================================
profiles = Table(
    "profiles",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    Column("email", Text),
    Column("first_name", Text),
    Column("last_name", Text),
    Column(
        "created_at", DateTime(timezone=True), server_default=func.now(), nullable=False
    ),
)


# =====================================================
# 2. USER_ROLES
# =====================================================
user_roles = Table(
    "user_roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("role", Text, nullable=False),
    UniqueConstraint("user_id", "role", name="uq_user_roles_user_id_role"),
)


# =====================================================
# 3. COURSES
# =====================================================
courses = Table(
    "courses",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    Column("title", Text, nullable=False),
    Column("is_published", Boolean, server_default=text("false"), nullable=False),
    Column(
        "created_at", DateTime(timezone=True), server_default=func.now(), nullable=False
    ),
)


# =====================================================
# 4. LESSONS
# =====================================================
lessons = Table(
    "lessons",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("video_url", Text),
    Column("sort_order", Integer, server_default="0", nullable=False),
    Column("is_published", Boolean, server_default=text("false"), nullable=False),
    Index("idx_lessons_course_published", "course_id", "is_published"),
)


# =====================================================
# 5. PROGRESS
# One row per (user, lesson, course). Never deleted by the app.
# =====================================================
progress = Table(
    "progress",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "lesson_id",
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("last_position_seconds", Integer, server_default="0", nullable=False),
    Column("completed", Boolean, server_default=text("false"), nullable=False),
    Column(
        "last_accessed_at",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    ),
    UniqueConstraint(
        "user_id", "lesson_id", "course_id", name="uq_progress_user_lesson_course"
    ),
    Index("idx_progress_user_course_completed", "user_id", "course_id", "completed"),
    CheckConstraint("last_position_seconds >= 0", name="non_negative_position"),
)


# =====================================================
# 6. COURSE_COMPLETIONS
# Claim row guarding the one-time completion side effect.
# =====================================================
course_completions = Table(
    "course_completions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "completed_at",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    ),
    Column("notified_at", DateTime(timezone=True)),
    UniqueConstraint("user_id", "course_id", name="uq_course_completions_user_course"),
)


# =====================================================
# 7. NOTIFICATION_LOG
# =====================================================
notification_log = Table(
    "notification_log",
    metadata,
    Column("log_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    ),
    Column("message_type", Text, nullable=False),  # e.g. "course_completed"
    Column("channel", Text, nullable=False),  # "email"
    Column("status", notification_status_enum, nullable=False),
    Column("error_message", Text),
    Column("reference_id", UUID(as_uuid=True)),  # course_id for completions
    Column("sent_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_notification_log_user_id", "user_id"),
    Index("idx_notification_log_sent_at", "sent_at"),
)
