"""
Environment-driven settings for the classroom progress service.

Read by main.py (port, CORS, startup check), the web API and the
completion email.
"""

import logging
import os

logger = logging.getLogger(__name__)

VITE_DEV_PORT = 5173


def _flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("true", "1", "yes")


def is_dev_mode() -> bool:
    """--dev flag or DEV_MODE env."""
    return _flag("DEV_MODE")


def is_production() -> bool:
    """Deployed on Railway."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    return int(os.getenv("API_PORT", "8000"))


def get_frontend_url() -> str:
    """Base URL for links in emails; FRONTEND_URL wins when set."""
    default_port = VITE_DEV_PORT if is_dev_mode() else get_api_port()
    return os.environ.get("FRONTEND_URL", f"http://localhost:{default_port}").rstrip(
        "/"
    )


def get_allowed_origins() -> list[str]:
    """CORS origins: local API and Vite ports plus the frontend URL."""
    origins = [
        f"http://{host}:{port}"
        for host in ("localhost", "127.0.0.1")
        for port in (VITE_DEV_PORT, get_api_port())
    ]
    frontend_url = get_frontend_url()
    if frontend_url not in origins:
        origins.append(frontend_url)
    return origins


def get_completion_test_email() -> str | None:
    """Recipient override for completion emails sent in test mode."""
    return os.environ.get("COMPLETION_TEST_EMAIL") or None


# (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for session tokens", True),
    ("SENDGRID_API_KEY", "SendGrid key for course completion emails", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check required environment variables.

    Missing variables are fatal only in production; elsewhere they come
    back as warnings.

    Returns:
        (all_ok, warnings)
    """
    missing = [
        (name, description, required_in_dev)
        for name, description, required_in_dev in REQUIRED_ENV_VARS
        if not os.environ.get(name)
    ]

    if is_production() and missing:
        for name, description, _ in missing:
            logger.error(f"{name}: Not set ({description})")
        return False, []

    in_dev = is_dev_mode()
    warnings = [
        f"{name}: Not set ({description})"
        for name, description, required_in_dev in missing
        if required_in_dev or not in_dev
    ]
    return True, warnings
