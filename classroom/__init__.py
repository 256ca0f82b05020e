"""
Classroom progress domain: lesson video progress and course completion.
Shared by the web API, the scheduler jobs and Alembic.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Viewer identity
from .viewers import Viewer, viewer_from_claims, resolve_viewer

__all__ = [
    # Database (SQLAlchemy)
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Viewers
    'Viewer', 'viewer_from_claims', 'resolve_viewer',
]
