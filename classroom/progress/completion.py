"""Course completion checks and the lesson-completed workflow.

Course completion is never stored as a flag: it is recomputed from the
published lessons and the user's completed progress rows each time.
"""

import logging
from typing import Awaitable, Callable
from uuid import UUID

import sentry_sdk

from .errors import AggregationError, ProgressWriteError
from .store import ProgressStore
from .types import CompletionOutcome, CourseCompletion

logger = logging.getLogger(__name__)

NotifyCourseCompleted = Callable[[UUID, UUID], Awaitable[object]]


async def get_course_completion(
    store: ProgressStore, user_id: UUID, course_id: UUID
) -> CourseCompletion:
    """
    Count the user's completed published lessons in a course.

    Raises:
        FetchLessonsError: listing published lessons failed
        FetchProgressError: listing completed progress failed
    """
    lesson_ids = await store.list_published_lessons(course_id)
    if not lesson_ids:
        return CourseCompletion(total_lessons=0, completed_lessons=0)

    completed_ids = await store.list_completed_lesson_ids(user_id, course_id)

    # Rows for unpublished or deleted lessons don't count
    published = set(lesson_ids)
    return CourseCompletion(
        total_lessons=len(published),
        completed_lessons=len(published & completed_ids),
    )


async def is_course_complete(
    store: ProgressStore, user_id: UUID, course_id: UUID
) -> bool:
    completion = await get_course_completion(store, user_id, course_id)
    return completion.is_complete


async def on_lesson_completed(
    store: ProgressStore,
    notify: NotifyCourseCompleted,
    user_id: UUID,
    course_id: UUID,
    lesson_id: UUID,
) -> CompletionOutcome:
    """
    Record a completed lesson and fire the course completion side effect if due.

    Write and aggregation failures abort silently (logged only). A failed
    notification is the one failure the viewer should hear about, so
    NotificationDispatchError propagates; the progress rows stay as written.
    """
    try:
        await store.mark_lesson_complete(user_id, lesson_id, course_id)
    except ProgressWriteError as e:
        logger.error(f"Error handling lesson completion: {e}")
        return CompletionOutcome.aborted

    try:
        completion = await get_course_completion(store, user_id, course_id)
    except AggregationError as e:
        logger.error(f"Error checking course completion: {e}")
        sentry_sdk.capture_exception(e)
        return CompletionOutcome.aborted

    if not completion.is_complete:
        logger.debug(
            f"Course {course_id} at {completion.completed_lessons}/"
            f"{completion.total_lessons} for user {user_id}"
        )
        return CompletionOutcome.course_incomplete

    logger.info(f"User {user_id} completed course {course_id}")
    await notify(user_id, course_id)
    return CompletionOutcome.course_completed
