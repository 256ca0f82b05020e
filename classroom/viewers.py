"""Viewer identity passed explicitly into progress operations."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError

from classroom.constants import ADMIN_ROLE
from classroom.database import get_connection
from classroom.tables import user_roles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewer:
    """The signed-in user watching a lesson."""

    user_id: UUID
    is_administrator: bool = False


def viewer_from_claims(claims: dict | None) -> Viewer | None:
    """
    Build a Viewer from decoded session token claims.

    The admin role is read from `app_metadata.role`. Returns None for
    anonymous or malformed tokens.
    """
    if not claims or not claims.get("sub"):
        return None

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        return None

    app_metadata = claims.get("app_metadata") or {}
    return Viewer(
        user_id=user_id,
        is_administrator=app_metadata.get("role") == ADMIN_ROLE,
    )


async def has_admin_role(user_id: UUID) -> bool:
    """Check the user_roles table for an admin grant."""
    async with get_connection() as conn:
        result = await conn.execute(
            select(user_roles.c.id)
            .where(
                and_(
                    user_roles.c.user_id == user_id,
                    user_roles.c.role == ADMIN_ROLE,
                )
            )
            .limit(1)
        )
        return result.first() is not None


async def resolve_viewer(claims: dict | None) -> Viewer | None:
    """
    Build a Viewer, falling back to the role table when the token has no admin claim.

    A failed role lookup treats the viewer as a regular student.
    """
    viewer = viewer_from_claims(claims)
    if viewer is None or viewer.is_administrator:
        return viewer

    try:
        is_admin = await has_admin_role(viewer.user_id)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Error checking admin status for {viewer.user_id}: {e}")
        return viewer

    if is_admin:
        return Viewer(user_id=viewer.user_id, is_administrator=True)
    return viewer
