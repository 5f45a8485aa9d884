"""
Authentication Routes

Login and current-user endpoints.
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator
from sqlalchemy import select

from src.database.models import User
from src.database.session import get_db_session
from src.dependencies.auth import get_current_user
from src.services.auth_service import get_auth_service
from src.types.errors import AppError, ErrorCode
from src.types.schemas import CamelModel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["authentication"])


# =============================================================================
# Request/Response Models
# =============================================================================


class LoginRequest(CamelModel):
    """Request body for user login."""

    email: str = Field(..., min_length=1, description="Email address")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(CamelModel):
    """Response containing user information."""

    id: int
    email: str
    is_email_verified: bool
    is_admin: bool
    created_at: datetime | None = None


class LoginResponse(CamelModel):
    """Response containing the access token and the user."""

    message: str = "Login successful"
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# =============================================================================
# Auth Endpoints
# =============================================================================


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """
    Authenticate with email and password.

    Raises:
        401: Unknown email or wrong password
        403: Email not verified
    """
    auth_service = get_auth_service()

    async with get_db_session() as db:
        result = await db.execute(select(User).where(User.email == request.email))
        user = result.scalar_one_or_none()

    if not user or not auth_service.verify_password(request.password, user.password):
        logger.warning(f"🔒 Failed login attempt for {request.email}")
        raise AppError(ErrorCode.AUTH_FAILED, "Invalid email or password", 401)

    if not user.is_email_verified:
        raise AppError(
            ErrorCode.EMAIL_NOT_VERIFIED,
            "Please verify your email before logging in",
            403,
        )

    token = auth_service.create_access_token(user.id, user.email)

    logger.info(f"🔑 User {user.id} logged in")

    return LoginResponse(access_token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: Annotated[User, Depends(get_current_user)],
):
    """Get the authenticated user's profile."""
    return UserResponse.model_validate(user)
