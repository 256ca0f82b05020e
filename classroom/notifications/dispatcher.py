"""
Course completion notification - the one-time side effect of finishing a course.

At-most-once delivery per (user, course) comes from a claim row in
course_completions: the first caller to insert it sends the email, every
later caller finds it taken and stops. A failed send releases the claim so
the next completion event can try again.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

import sentry_sdk
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

from classroom.config import get_completion_test_email, get_frontend_url
from classroom.database import get_connection, get_transaction
from classroom.enums import NotificationStatus
from classroom.notifications.channels.email import send_email
from classroom.notifications.templates import get_message
from classroom.progress.errors import NotificationDispatchError
from classroom.tables import course_completions, courses, notification_log, profiles

logger = logging.getLogger(__name__)

COURSE_COMPLETED = "course_completed"

DATABASE_ERRORS = (SQLAlchemyError, OSError)


async def log_notification(
    user_id: UUID | None,
    message_type: str,
    channel: str,
    success: bool,
    error_message: str | None = None,
    reference_id: UUID | None = None,
) -> None:
    """
    Log a notification attempt to the database.

    Args:
        user_id: Recipient's user ID
        message_type: Message type key from messages.yaml
        channel: Delivery channel ("email")
        success: Whether the notification was sent successfully
        error_message: Error details if failed
        reference_id: ID of the entity the notification is about (course_id)
    """
    try:
        async with get_transaction() as conn:
            await conn.execute(
                insert(notification_log).values(
                    user_id=user_id,
                    message_type=message_type,
                    channel=channel,
                    status=NotificationStatus.sent
                    if success
                    else NotificationStatus.failed,
                    error_message=error_message,
                    reference_id=reference_id,
                )
            )
    except DATABASE_ERRORS as e:
        # Don't let logging failures break notification sending
        logger.warning(f"Failed to log notification: {e}")


async def claim_course_completion(user_id: UUID, course_id: UUID) -> bool:
    """
    Insert the completion claim row.

    Returns True if this call created it, False if it already existed.
    """
    stmt = (
        pg_insert(course_completions)
        .values(user_id=user_id, course_id=course_id)
        .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
        .returning(course_completions.c.id)
    )
    async with get_transaction() as conn:
        result = await conn.execute(stmt)
        return result.first() is not None


async def release_course_completion(user_id: UUID, course_id: UUID) -> None:
    """Delete an unsent claim so a later completion event can retry."""
    async with get_transaction() as conn:
        await conn.execute(
            delete(course_completions).where(
                and_(
                    course_completions.c.user_id == user_id,
                    course_completions.c.course_id == course_id,
                    course_completions.c.notified_at.is_(None),
                )
            )
        )


async def mark_completion_notified(user_id: UUID, course_id: UUID) -> None:
    async with get_transaction() as conn:
        await conn.execute(
            update(course_completions)
            .where(
                and_(
                    course_completions.c.user_id == user_id,
                    course_completions.c.course_id == course_id,
                )
            )
            .values(notified_at=datetime.now(timezone.utc))
        )


async def get_completion_recipient(user_id: UUID, course_id: UUID) -> dict:
    """
    Fetch the profile and course data the completion email needs.

    Raises:
        NotificationDispatchError: user, email or course not found
    """
    async with get_connection() as conn:
        profile_result = await conn.execute(
            select(profiles.c.email, profiles.c.first_name).where(
                profiles.c.id == user_id
            )
        )
        profile = profile_result.mappings().first()

        course_result = await conn.execute(
            select(courses.c.title).where(courses.c.id == course_id)
        )
        course = course_result.mappings().first()

    if not profile or not profile["email"]:
        raise NotificationDispatchError(f"User email not found for {user_id}")
    if not course:
        raise NotificationDispatchError(f"Course {course_id} not found")

    email = profile["email"]
    return {
        "email": email,
        "name": profile["first_name"] or email.split("@")[0] or "Student",
        "course_title": course["title"],
    }


def format_completion_date(when: datetime) -> str:
    """Format as e.g. 'October 17, 2026'."""
    return f"{when.strftime('%B')} {when.day}, {when.year}"


async def _send_completion_email(
    user_id: UUID, course_id: UUID, test_mode: bool
) -> None:
    try:
        recipient = await get_completion_recipient(user_id, course_id)
    except DATABASE_ERRORS as e:
        raise NotificationDispatchError(
            f"Error fetching completion data for user {user_id}"
        ) from e

    to_email = recipient["email"]
    if test_mode:
        to_email = get_completion_test_email()
        if not to_email:
            raise NotificationDispatchError("COMPLETION_TEST_EMAIL not set")

    context = {
        "name": recipient["name"],
        "course_title": recipient["course_title"],
        "completion_date": format_completion_date(datetime.now(timezone.utc)),
        "dashboard_url": f"{get_frontend_url()}/dashboard",
    }
    subject = get_message(COURSE_COMPLETED, "email_subject", context)
    body = get_message(COURSE_COMPLETED, "email_body", context)

    logger.info(f"Sending course completion email for course {course_id} to {to_email}")
    success = send_email(to_email, subject, body)

    await log_notification(
        user_id=user_id,
        message_type=COURSE_COMPLETED,
        channel="email",
        success=success,
        error_message=None if success else "SendGrid delivery failed",
        reference_id=course_id,
    )

    if not success:
        raise NotificationDispatchError(
            f"Course completion email to user {user_id} was not delivered"
        )


async def notify_course_completed(
    user_id: UUID, course_id: UUID, *, test_mode: bool = False
) -> bool:
    """
    Send the course completion email at most once per (user, course).

    In test mode the email goes to COMPLETION_TEST_EMAIL and no claim is
    taken, so the real notification is still sent later.

    Returns:
        True if the email was sent now, False if it had already been sent

    Raises:
        NotificationDispatchError: the email could not be sent
    """
    if test_mode:
        await _send_completion_email(user_id, course_id, test_mode=True)
        return True

    try:
        claimed = await claim_course_completion(user_id, course_id)
    except DATABASE_ERRORS as e:
        raise NotificationDispatchError(
            f"Could not claim completion for user {user_id} course {course_id}"
        ) from e

    if not claimed:
        logger.info(
            f"Completion for user {user_id} course {course_id} already notified, skipping"
        )
        return False

    try:
        await _send_completion_email(user_id, course_id, test_mode=False)
    except Exception as e:
        # Any failure before delivery hands the claim back
        sentry_sdk.capture_exception(e)
        try:
            await release_course_completion(user_id, course_id)
        except DATABASE_ERRORS as release_error:
            logger.error(
                f"Could not release completion claim for user {user_id}: {release_error}"
            )
        if isinstance(e, NotificationDispatchError):
            raise
        raise NotificationDispatchError(
            f"Course completion email to user {user_id} failed: {e}"
        ) from e

    try:
        await mark_completion_notified(user_id, course_id)
    except DATABASE_ERRORS as e:
        # Email is out; an unmarked claim still blocks resending
        logger.warning(f"Could not mark completion notified for user {user_id}: {e}")

    return True
