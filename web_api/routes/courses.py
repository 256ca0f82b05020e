# web_api/routes/courses.py
"""Course API routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from classroom.progress import AggregationError, ProgressStore, get_course_completion
from classroom.viewers import Viewer
from web_api.auth import get_current_viewer
from web_api.routes.progress import get_progress_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["courses"])


class CourseCompletionResponse(BaseModel):
    course_id: UUID
    total_lessons: int
    completed_lessons: int
    percentage: int
    is_complete: bool


@router.get("/{course_id}/completion", response_model=CourseCompletionResponse)
async def get_course_completion_endpoint(
    course_id: UUID,
    viewer: Viewer = Depends(get_current_viewer),
    store: ProgressStore = Depends(get_progress_store),
):
    """Get the viewer's completion of a course's published lessons.

    A course with no published lessons is never complete.
    """
    try:
        completion = await get_course_completion(store, viewer.user_id, course_id)
    except AggregationError as e:
        logger.error(f"Error aggregating completion for course {course_id}: {e}")
        raise HTTPException(503, "Course progress is temporarily unavailable")

    return CourseCompletionResponse(
        course_id=course_id,
        total_lessons=completion.total_lessons,
        completed_lessons=completion.completed_lessons,
        percentage=completion.percentage,
        is_complete=completion.is_complete,
    )
