"""Lesson progress API routes.

Endpoints:
- GET  /api/progress/{course_id}/lessons/{lesson_id} - Stored progress for a lesson
- POST /api/progress/sessions - Open a viewing session (starts periodic saves)
- POST /api/progress/sessions/position - Player time update
- POST /api/progress/sessions/close - Close a viewing session (final save)
- POST /api/progress/complete - Explicitly mark a lesson complete
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from classroom.notifications import notify_course_completed
from classroom.progress import (
    CompletionOutcome,
    DatabaseProgressStore,
    LessonProgressState,
    NotificationDispatchError,
    ProgressReadError,
    ProgressStore,
    ViewingSession,
    ViewingSessionNotFound,
    ViewingSessionRegistry,
    get_session_registry,
    on_lesson_completed,
)
from classroom.progress.sessions import COMPLETION_FAILED_NOTICE, COURSE_COMPLETED_NOTICE
from classroom.viewers import Viewer
from web_api.auth import get_current_viewer, get_optional_viewer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/progress", tags=["progress"])


def get_progress_store() -> ProgressStore:
    return DatabaseProgressStore()


def get_completion_notifier():
    return notify_course_completed


class LessonProgressResponse(BaseModel):
    lesson_id: UUID
    course_id: UUID
    last_position_seconds: int = 0
    completed: bool = False
    state: LessonProgressState = LessonProgressState.unstarted
    last_accessed_at: datetime | None = None


class NoticeResponse(BaseModel):
    title: str
    description: str
    variant: str = "default"


class OpenSessionRequest(BaseModel):
    course_id: UUID
    lesson_id: UUID
    video_url: str | None = None
    # False when the page has no completion handler (e.g. admin content browsing)
    track_completion: bool = True


class PositionUpdateRequest(BaseModel):
    course_id: UUID
    lesson_id: UUID
    current_time: float = Field(ge=0)
    duration: float | None = Field(default=None, ge=0)


class CloseSessionRequest(BaseModel):
    course_id: UUID
    lesson_id: UUID


class SessionResponse(BaseModel):
    tracking: bool
    current_time: float = 0
    duration: float = 0
    completed: bool = False
    state: LessonProgressState = LessonProgressState.unstarted
    notices: list[NoticeResponse] = []


class MarkCompleteRequest(BaseModel):
    course_id: UUID
    lesson_id: UUID


class MarkCompleteResponse(BaseModel):
    outcome: CompletionOutcome
    course_completed: bool
    notices: list[NoticeResponse] = []


def _session_response(session: ViewingSession) -> SessionResponse:
    tracker = session.tracker
    return SessionResponse(
        tracking=tracker.active,
        current_time=tracker.current_time,
        duration=tracker.duration,
        completed=tracker.completed,
        state=tracker.state,
        notices=[
            NoticeResponse(
                title=n.title, description=n.description, variant=n.variant
            )
            for n in session.drain_notices()
        ],
    )


@router.get("/{course_id}/lessons/{lesson_id}", response_model=LessonProgressResponse)
async def get_lesson_progress(
    course_id: UUID,
    lesson_id: UUID,
    viewer: Viewer = Depends(get_current_viewer),
    store: ProgressStore = Depends(get_progress_store),
):
    """Return the viewer's stored progress, or defaults if there is none.

    A failed read also returns defaults; progress errors are never shown to viewers.
    """
    try:
        record = await store.load_progress(viewer.user_id, lesson_id, course_id)
    except ProgressReadError as e:
        logger.warning(f"Error loading progress: {e}")
        record = None

    if record is None:
        return LessonProgressResponse(lesson_id=lesson_id, course_id=course_id)

    return LessonProgressResponse(
        lesson_id=lesson_id,
        course_id=course_id,
        last_position_seconds=record.last_position_seconds,
        completed=record.completed,
        state=record.state,
        last_accessed_at=record.last_accessed_at,
    )


@router.post("/sessions", response_model=SessionResponse)
async def open_session(
    body: OpenSessionRequest,
    viewer: Viewer | None = Depends(get_optional_viewer),
    registry: ViewingSessionRegistry = Depends(get_session_registry),
):
    """Open a viewing session for a lesson.

    Anonymous visitors get an untracked response; nothing is read or written.
    """
    if viewer is None:
        return SessionResponse(tracking=False)

    session = await registry.open(
        viewer,
        course_id=body.course_id,
        lesson_id=body.lesson_id,
        video_url=body.video_url,
        track_completion=body.track_completion,
    )
    return _session_response(session)


@router.post("/sessions/position", response_model=SessionResponse)
async def update_position(
    body: PositionUpdateRequest,
    viewer: Viewer = Depends(get_current_viewer),
    registry: ViewingSessionRegistry = Depends(get_session_registry),
):
    """Record the player's current time. Saving happens on the session interval."""
    try:
        session = await registry.update(
            viewer,
            body.course_id,
            body.lesson_id,
            current_time=body.current_time,
            duration=body.duration,
        )
    except ViewingSessionNotFound as e:
        raise HTTPException(404, str(e))

    return _session_response(session)


@router.post("/sessions/close", response_model=SessionResponse)
async def close_session(
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    registry: ViewingSessionRegistry = Depends(get_session_registry),
):
    """Close the viewing session and flush the final position.

    The raw body is validated directly: sendBeacon on page unload posts JSON as
    text/plain.
    """
    try:
        body = CloseSessionRequest.model_validate_json(await request.body())
    except ValidationError as e:
        raise HTTPException(400, f"Invalid request body: {e.errors()[0]['msg']}")

    try:
        session = await registry.close(viewer, body.course_id, body.lesson_id)
    except ViewingSessionNotFound as e:
        raise HTTPException(404, str(e))

    return _session_response(session)


@router.post("/complete", response_model=MarkCompleteResponse)
async def complete_lesson(
    body: MarkCompleteRequest,
    viewer: Viewer = Depends(get_current_viewer),
    store: ProgressStore = Depends(get_progress_store),
    notifier=Depends(get_completion_notifier),
):
    """Mark a lesson complete and run the course completion check.

    Returns 502 if the course is complete but its completion email could not
    be sent; the lesson stays completed either way.
    """
    notices = []

    async def notify(user_id: UUID, course_id: UUID) -> None:
        if await notifier(user_id, course_id):
            notices.append(COURSE_COMPLETED_NOTICE)

    try:
        outcome = await on_lesson_completed(
            store, notify, viewer.user_id, body.course_id, body.lesson_id
        )
    except NotificationDispatchError as e:
        logger.error(f"Error marking course as completed: {e}")
        raise HTTPException(502, COMPLETION_FAILED_NOTICE.description)

    return MarkCompleteResponse(
        outcome=outcome,
        course_completed=outcome == CompletionOutcome.course_completed,
        notices=[
            NoticeResponse(title=n.title, description=n.description, variant=n.variant)
            for n in notices
        ],
    )
