"""Root pytest configuration."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# .env.local wins over .env, matching main.py
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Default policy; APScheduler and asyncpg both run on the stock loop."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def reset_session_registry():
    """Tests never share the process-wide viewing session registry."""
    from classroom.progress import clear_session_registry

    yield
    clear_session_registry()
