"""Initial progress schema.

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates profiles, user_roles, courses, lessons, progress,
course_completions and notification_log.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_profiles"),
    )

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "profiles.id",
                ondelete="CASCADE",
                name="fk_user_roles_user_id_profiles",
            ),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_user_roles"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_id_role"),
    )

    op.create_table(
        "courses",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "is_published", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_courses"),
    )

    op.create_table(
        "lessons",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "courses.id", ondelete="CASCADE", name="fk_lessons_course_id_courses"
            ),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "is_published", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name="pk_lessons"),
    )
    op.create_index(
        "idx_lessons_course_published", "lessons", ["course_id", "is_published"]
    )

    op.create_table(
        "progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "profiles.id", ondelete="CASCADE", name="fk_progress_user_id_profiles"
            ),
            nullable=False,
        ),
        sa.Column(
            "lesson_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "lessons.id", ondelete="CASCADE", name="fk_progress_lesson_id_lessons"
            ),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "courses.id", ondelete="CASCADE", name="fk_progress_course_id_courses"
            ),
            nullable=False,
        ),
        sa.Column(
            "last_position_seconds", sa.Integer(), server_default="0", nullable=False
        ),
        sa.Column(
            "completed", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "last_accessed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_progress"),
        sa.UniqueConstraint(
            "user_id", "lesson_id", "course_id", name="uq_progress_user_lesson_course"
        ),
        sa.CheckConstraint(
            "last_position_seconds >= 0", name="ck_progress_non_negative_position"
        ),
    )
    op.create_index(
        "idx_progress_user_course_completed",
        "progress",
        ["user_id", "course_id", "completed"],
    )

    op.create_table(
        "course_completions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "profiles.id",
                ondelete="CASCADE",
                name="fk_course_completions_user_id_profiles",
            ),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "courses.id",
                ondelete="CASCADE",
                name="fk_course_completions_course_id_courses",
            ),
            nullable=False,
        ),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_course_completions"),
        sa.UniqueConstraint(
            "user_id", "course_id", name="uq_course_completions_user_course"
        ),
    )

    notification_status = sa.Enum("sent", "failed", name="notification_status")
    op.create_table(
        "notification_log",
        sa.Column("log_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(
                "profiles.id",
                ondelete="SET NULL",
                name="fk_notification_log_user_id_profiles",
            ),
            nullable=True,
        ),
        sa.Column("message_type", sa.Text(), nullable=False),
        sa.Column("channel", sa.Text(), nullable=False),
        sa.Column("status", notification_status, nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("reference_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "sent_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("log_id", name="pk_notification_log"),
    )
    op.create_index("idx_notification_log_user_id", "notification_log", ["user_id"])
    op.create_index("idx_notification_log_sent_at", "notification_log", ["sent_at"])


def downgrade() -> None:
    op.drop_index("idx_notification_log_sent_at", table_name="notification_log")
    op.drop_index("idx_notification_log_user_id", table_name="notification_log")
    op.drop_table("notification_log")
    sa.Enum(name="notification_status").drop(op.get_bind(), checkfirst=True)

    op.drop_table("course_completions")

    op.drop_index("idx_progress_user_course_completed", table_name="progress")
    op.drop_table("progress")

    op.drop_index("idx_lessons_course_published", table_name="lessons")
    op.drop_table("lessons")
    op.drop_table("courses")
    op.drop_table("user_roles")
    op.drop_table("profiles")
