"""
JWT authentication utilities for the web API.

Security measures implemented:
- HS256 signing algorithm
- Token expiration (24 hours)
- Session cookie or Authorization: Bearer header
"""

import os
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import HTTPException, Request

from classroom.viewers import Viewer, resolve_viewer

JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24
SESSION_COOKIE = "session"


def _get_jwt_secret() -> str:
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET environment variable not set")
    return secret


def create_jwt(user_id: UUID | str, email: str = "", role: str | None = None) -> str:
    """
    Create a signed JWT token for an authenticated user.

    Args:
        user_id: The user's profile ID
        email: The user's email address
        role: Optional role stored under app_metadata (e.g. "admin")

    Returns:
        Signed JWT token string
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "app_metadata": {"role": role} if role else {},
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded payload dict if valid, None if invalid
    """
    try:
        return jwt.decode(token, _get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _get_token(request: Request) -> str | None:
    """Session cookie first, then Authorization: Bearer."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def get_optional_viewer(request: Request) -> Viewer | None:
    """
    FastAPI dependency to optionally get the current viewer.

    Returns None for anonymous visitors or invalid tokens instead of raising.
    """
    token = _get_token(request)
    if not token:
        return None

    return await resolve_viewer(verify_jwt(token))


async def get_current_viewer(request: Request) -> Viewer:
    """
    FastAPI dependency requiring a signed-in viewer.

    Raises:
        HTTPException: 401 if not authenticated or invalid token
    """
    viewer = await get_optional_viewer(request)
    if viewer is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return viewer
