"""
Authentication Dependencies

FastAPI dependencies for JWT-based authentication and admin access control.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.database.models import User
from src.database.session import get_db_session
from src.services.auth_service import get_auth_service

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer(auto_error=False)


async def _user_from_token(token: str) -> User | None:
    auth_service = get_auth_service()

    payload = auth_service.decode_token(token)
    if not payload or payload.get("type") != "access":
        return None

    user_id = auth_service.user_id_from_payload(payload)
    if user_id is None:
        return None

    async with get_db_session() as db:
        return await db.get(User, user_id)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """
    Dependency to get the current authenticated user.

    Extracts JWT from Authorization header, validates it, and returns the user.

    Raises:
        HTTPException 401: If token is missing, invalid, expired, or the
            user no longer exists

    Usage:
        @router.get("/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"message": f"Hello {user.email}!"}
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await _user_from_token(credentials.credentials)
    if not user:
        logger.debug("Rejected request with invalid token or unknown user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User | None:
    """
    Dependency to get the current user if authenticated, None otherwise.

    Used by endpoints that show public content to everyone and private
    content to its owner.
    """
    if not credentials:
        return None
    return await _user_from_token(credentials.credentials)


async def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency to require an admin account.

    Chains with get_current_user to first authenticate, then check the flag.

    Raises:
        HTTPException 403: If user is not an admin
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
