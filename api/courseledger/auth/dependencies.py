"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Optional user id (None when unauthenticated)
- Required user id (HTTP 401 when unauthenticated)
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from courseledger.core.context import set_user_id

from .security import decode_access_token


logger = structlog.get_logger(__name__)


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_optional_user_id(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> str | None:
    """Opaque user id of the active session, or None if unauthenticated.

    An invalid or expired token is treated as no session.
    """
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        logger.info("access_token_rejected", reason=str(e))
        return None

    user_id = str(payload["sub"])
    # Set user_id in context for logging
    set_user_id(user_id)
    return user_id


async def get_current_user_id(
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
) -> str:
    """Opaque user id of the active session.

    Raises:
        HTTPException(401): If there is no valid session
    """
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please log in to continue",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


OptionalUserId = Annotated[str | None, Depends(get_optional_user_id)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
