"""Tests for course completion aggregation and the lesson-completed workflow."""

import uuid

import pytest
from unittest.mock import AsyncMock, patch

from classroom.progress.completion import (
    get_course_completion,
    is_course_complete,
    on_lesson_completed,
)
from classroom.progress.errors import NotificationDispatchError
from classroom.progress.types import CompletionOutcome, ProgressRecord


def complete(store, user_id, course_id, *lesson_ids):
    for lesson_id in lesson_ids:
        store.seed(ProgressRecord(user_id, lesson_id, course_id, 10, completed=True))


class TestCourseCompletion:
    @pytest.mark.asyncio
    async def test_requires_every_published_lesson(self, store, viewer, course_id):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        store.published[course_id] = [a, b, c]

        complete(store, viewer.user_id, course_id, a, b)
        assert await is_course_complete(store, viewer.user_id, course_id) is False

        complete(store, viewer.user_id, course_id, c)
        assert await is_course_complete(store, viewer.user_id, course_id) is True

    @pytest.mark.asyncio
    async def test_course_without_lessons_is_never_complete(
        self, store, viewer, course_id
    ):
        completion = await get_course_completion(store, viewer.user_id, course_id)

        assert completion.total_lessons == 0
        assert completion.percentage == 0
        assert not completion.is_complete
        # No lessons means the progress query is skipped
        assert "list_completed_lesson_ids" not in store.calls

    @pytest.mark.asyncio
    async def test_unpublished_lessons_do_not_count(self, store, viewer, course_id):
        a, b, removed = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        store.published[course_id] = [a, b]
        complete(store, viewer.user_id, course_id, a, removed)

        completion = await get_course_completion(store, viewer.user_id, course_id)

        assert completion.completed_lessons == 1
        assert completion.total_lessons == 2
        assert completion.percentage == 50
        assert not completion.is_complete

    @pytest.mark.asyncio
    async def test_other_users_progress_is_ignored(self, store, viewer, course_id):
        a = uuid.uuid4()
        store.published[course_id] = [a]
        complete(store, uuid.uuid4(), course_id, a)

        assert await is_course_complete(store, viewer.user_id, course_id) is False


class TestOnLessonCompleted:
    @pytest.mark.asyncio
    async def test_notifies_only_when_last_lesson_completed(
        self, store, viewer, course_id
    ):
        l1, l2 = uuid.uuid4(), uuid.uuid4()
        store.published[course_id] = [l1, l2]
        notify = AsyncMock(return_value=True)

        first = await on_lesson_completed(store, notify, viewer.user_id, course_id, l1)
        assert first == CompletionOutcome.course_incomplete
        notify.assert_not_awaited()

        second = await on_lesson_completed(store, notify, viewer.user_id, course_id, l2)
        assert second == CompletionOutcome.course_completed
        notify.assert_awaited_once_with(viewer.user_id, course_id)

    @pytest.mark.asyncio
    async def test_marks_lesson_complete_keeping_position(
        self, store, viewer, course_id, lesson_id
    ):
        store.published[course_id] = [lesson_id, uuid.uuid4()]
        store.seed(ProgressRecord(viewer.user_id, lesson_id, course_id, 250))

        await on_lesson_completed(
            store, AsyncMock(), viewer.user_id, course_id, lesson_id
        )

        record = store.get(viewer.user_id, lesson_id, course_id)
        assert record.completed
        assert record.last_position_seconds == 250

    @pytest.mark.asyncio
    async def test_write_failure_aborts_silently(
        self, store, viewer, course_id, lesson_id
    ):
        store.published[course_id] = [lesson_id]
        store.fail_writes = True
        notify = AsyncMock()

        outcome = await on_lesson_completed(
            store, notify, viewer.user_id, course_id, lesson_id
        )

        assert outcome == CompletionOutcome.aborted
        assert "list_published_lessons" not in store.calls
        notify.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", ["fail_lessons", "fail_completed"])
    async def test_aggregation_failure_aborts_silently(
        self, store, viewer, course_id, lesson_id, failure
    ):
        store.published[course_id] = [lesson_id]
        setattr(store, failure, True)
        notify = AsyncMock()

        with patch("classroom.progress.completion.sentry_sdk") as mock_sentry:
            outcome = await on_lesson_completed(
                store, notify, viewer.user_id, course_id, lesson_id
            )

        assert outcome == CompletionOutcome.aborted
        notify.assert_not_awaited()
        mock_sentry.capture_exception.assert_called_once()
        # The lesson itself stays completed
        assert store.get(viewer.user_id, lesson_id, course_id).completed

    @pytest.mark.asyncio
    async def test_notification_failure_propagates(
        self, store, viewer, course_id, lesson_id
    ):
        store.published[course_id] = [lesson_id]
        notify = AsyncMock(side_effect=NotificationDispatchError("smtp down"))

        with pytest.raises(NotificationDispatchError):
            await on_lesson_completed(
                store, notify, viewer.user_id, course_id, lesson_id
            )

        assert store.get(viewer.user_id, lesson_id, course_id).completed
