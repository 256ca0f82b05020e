# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Requests run through the real app with the progress store, session
registry and completion notifier swapped for mocks, so no database or
SendGrid access is needed.
"""

import sys
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

# Ensure we import from root main.py
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from main import app

from classroom.progress import ViewingSessionRegistry, get_session_registry
from classroom.progress.store import DatabaseProgressStore
from web_api.auth import create_jwt
from web_api.routes.progress import get_completion_notifier, get_progress_store


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret-for-api-tests-0123456789abcdef")


@pytest.fixture(autouse=True)
def no_role_lookup():
    """Tokens without an admin claim would otherwise hit user_roles."""
    with patch("classroom.viewers.has_admin_role", AsyncMock(return_value=False)):
        yield


@pytest.fixture
def mock_store():
    store = AsyncMock(spec=DatabaseProgressStore)
    store.load_progress.return_value = None
    store.list_published_lessons.return_value = []
    store.list_completed_lesson_ids.return_value = set()
    return store


@pytest.fixture
def mock_notifier():
    return AsyncMock(return_value=True)


@pytest.fixture
def registry(mock_store, mock_notifier):
    return ViewingSessionRegistry(
        mock_store,
        mock_notifier,
        timer_factory=lambda job_id: MagicMock(running=False),
    )


@pytest.fixture
def client(mock_store, mock_notifier, registry):
    app.dependency_overrides[get_progress_store] = lambda: mock_store
    app.dependency_overrides[get_completion_notifier] = lambda: mock_notifier
    app.dependency_overrides[get_session_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_jwt(user_id, 'alice@example.com')}"}


@pytest.fixture
def admin_headers():
    token = create_jwt(uuid.uuid4(), "admin@example.com", role="admin")
    return {"Authorization": f"Bearer {token}"}
