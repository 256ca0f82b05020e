"""Tests for the course completion notification dispatcher."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock, MagicMock, patch

from classroom.notifications.dispatcher import (
    format_completion_date,
    notify_course_completed,
)
from classroom.progress.errors import NotificationDispatchError

USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
COURSE_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")

RECIPIENT = {
    "email": "alice@example.com",
    "name": "Alice",
    "course_title": "Intro to Robotics",
}


@pytest.fixture
def dispatcher_mocks():
    """Patch every database call the dispatcher makes."""
    with (
        patch(
            "classroom.notifications.dispatcher.claim_course_completion",
            AsyncMock(return_value=True),
        ) as claim,
        patch(
            "classroom.notifications.dispatcher.release_course_completion",
            AsyncMock(),
        ) as release,
        patch(
            "classroom.notifications.dispatcher.mark_completion_notified",
            AsyncMock(),
        ) as mark,
        patch(
            "classroom.notifications.dispatcher.get_completion_recipient",
            AsyncMock(return_value=dict(RECIPIENT)),
        ) as recipient,
        patch(
            "classroom.notifications.dispatcher.log_notification", AsyncMock()
        ) as log,
        patch("classroom.notifications.dispatcher.sentry_sdk") as sentry,
    ):
        yield {
            "claim": claim,
            "release": release,
            "mark": mark,
            "recipient": recipient,
            "log": log,
            "sentry": sentry,
        }


class TestNotifyCourseCompleted:
    @pytest.mark.asyncio
    async def test_sends_email_on_first_completion(self, dispatcher_mocks):
        captured = {}

        def capture_email(to_email, subject, body):
            captured.update(to_email=to_email, subject=subject, body=body)
            return True

        with patch(
            "classroom.notifications.dispatcher.send_email", side_effect=capture_email
        ):
            sent = await notify_course_completed(USER_ID, COURSE_ID)

        assert sent is True
        assert captured["to_email"] == "alice@example.com"
        assert captured["subject"] == "Congratulations on Completing Intro to Robotics!"
        assert "Hi Alice" in captured["body"]
        assert "/dashboard" in captured["body"]
        dispatcher_mocks["mark"].assert_awaited_once_with(USER_ID, COURSE_ID)
        dispatcher_mocks["log"].assert_awaited_once()
        assert dispatcher_mocks["log"].call_args.kwargs["success"] is True

    @pytest.mark.asyncio
    async def test_skips_when_already_claimed(self, dispatcher_mocks):
        dispatcher_mocks["claim"].return_value = False

        with patch("classroom.notifications.dispatcher.send_email") as mock_send:
            sent = await notify_course_completed(USER_ID, COURSE_ID)

        assert sent is False
        mock_send.assert_not_called()
        dispatcher_mocks["mark"].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_send_releases_claim_and_raises(self, dispatcher_mocks):
        with patch(
            "classroom.notifications.dispatcher.send_email", return_value=False
        ):
            with pytest.raises(NotificationDispatchError):
                await notify_course_completed(USER_ID, COURSE_ID)

        dispatcher_mocks["release"].assert_awaited_once_with(USER_ID, COURSE_ID)
        dispatcher_mocks["mark"].assert_not_awaited()
        dispatcher_mocks["sentry"].capture_exception.assert_called_once()
        assert dispatcher_mocks["log"].call_args.kwargs["success"] is False

    @pytest.mark.asyncio
    async def test_missing_email_releases_claim_and_raises(self, dispatcher_mocks):
        dispatcher_mocks["recipient"].side_effect = NotificationDispatchError(
            "User email not found"
        )

        with patch("classroom.notifications.dispatcher.send_email") as mock_send:
            with pytest.raises(NotificationDispatchError):
                await notify_course_completed(USER_ID, COURSE_ID)

        mock_send.assert_not_called()
        dispatcher_mocks["release"].assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_claim(self, dispatcher_mocks):
        with patch(
            "classroom.notifications.dispatcher.get_message",
            side_effect=KeyError("course_title"),
        ):
            with pytest.raises(NotificationDispatchError) as exc_info:
                await notify_course_completed(USER_ID, COURSE_ID)

        assert isinstance(exc_info.value.__cause__, KeyError)
        dispatcher_mocks["release"].assert_awaited_once_with(USER_ID, COURSE_ID)
        dispatcher_mocks["mark"].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_database_error_raises_dispatch_error(self, dispatcher_mocks):
        dispatcher_mocks["claim"].side_effect = OperationalError(
            "INSERT", {}, Exception("connection refused")
        )

        with pytest.raises(NotificationDispatchError):
            await notify_course_completed(USER_ID, COURSE_ID)

    @pytest.mark.asyncio
    async def test_mark_failure_after_send_still_succeeds(self, dispatcher_mocks):
        dispatcher_mocks["mark"].side_effect = OSError("connection reset")

        with patch("classroom.notifications.dispatcher.send_email", return_value=True):
            sent = await notify_course_completed(USER_ID, COURSE_ID)

        assert sent is True
        dispatcher_mocks["release"].assert_not_awaited()


class TestTestMode:
    @pytest.mark.asyncio
    async def test_sends_to_override_without_claiming(
        self, dispatcher_mocks, monkeypatch
    ):
        monkeypatch.setenv("COMPLETION_TEST_EMAIL", "qa@example.com")

        with patch(
            "classroom.notifications.dispatcher.send_email", return_value=True
        ) as mock_send:
            sent = await notify_course_completed(USER_ID, COURSE_ID, test_mode=True)

        assert sent is True
        assert mock_send.call_args.args[0] == "qa@example.com"
        dispatcher_mocks["claim"].assert_not_awaited()
        dispatcher_mocks["mark"].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_override_address(self, dispatcher_mocks, monkeypatch):
        monkeypatch.delenv("COMPLETION_TEST_EMAIL", raising=False)

        with patch("classroom.notifications.dispatcher.send_email") as mock_send:
            with pytest.raises(NotificationDispatchError):
                await notify_course_completed(USER_ID, COURSE_ID, test_mode=True)

        mock_send.assert_not_called()


class TestLogNotification:
    @pytest.mark.asyncio
    async def test_database_failure_is_swallowed(self):
        from classroom.notifications.dispatcher import log_notification

        failing = MagicMock()
        failing.return_value.__aenter__ = AsyncMock(
            side_effect=OSError("connection refused")
        )
        failing.return_value.__aexit__ = AsyncMock(return_value=False)

        with patch("classroom.notifications.dispatcher.get_transaction", failing):
            await log_notification(
                user_id=USER_ID,
                message_type="course_completed",
                channel="email",
                success=True,
            )


def test_format_completion_date():
    when = datetime(2026, 10, 7, 15, 0, tzinfo=timezone.utc)
    assert format_completion_date(when) == "October 7, 2026"
