"""Authentication dependencies for FastAPI routes.

Session handling lives in the upstream gateway. It authenticates the caller
and forwards the identity in the ``X-User-Id`` and ``X-User-Role`` headers;
this module only turns those headers into a ``CurrentUser``.
"""

from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status

from bodymetrics.schemas.auth import CurrentUser
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    """Get the current authenticated user from gateway headers.

    Args:
        x_user_id: Authenticated user ID forwarded by the gateway
        x_user_role: Optional role ("user" or "admin")

    Returns:
        CurrentUser: Authenticated user information

    Raises:
        HTTPException: If the identity header is missing or malformed
    """
    if not x_user_id:
        LOGGER.warning("Request without forwarded user identity")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    try:
        user_id = UUID(x_user_id)
    except ValueError as e:
        LOGGER.warning(f"Malformed user identity header: {x_user_id!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity",
        ) from e

    user = CurrentUser(id=user_id, role=(x_user_role or "user").lower())
    LOGGER.debug(f"Authenticated user: {user.id} ({user.role})")
    return user
