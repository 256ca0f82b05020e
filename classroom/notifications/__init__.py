"""
Notifications sent by the classroom.

Public API:
    notify_course_completed(user_id, course_id) - one-time course completion email
"""

from .dispatcher import notify_course_completed

__all__ = [
    "notify_course_completed",
]
