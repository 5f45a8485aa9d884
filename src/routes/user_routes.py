"""
User Routes

Self-service account endpoints.
"""

import logging
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Body, Depends

from src.database.models import User
from src.dependencies.auth import get_current_user
from src.services.user_deletion_service import get_user_deletion_service
from src.types.errors import AppError, ErrorCode
from src.types.schemas import DeleteUserRequest, DeleteUserResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])


@router.delete("/me", response_model=DeleteUserResponse)
async def delete_own_account(
    user: Annotated[User, Depends(get_current_user)],
    request: Annotated[DeleteUserRequest | None, Body()] = None,
):
    """
    Delete the authenticated user's account.

    With savePublicMantrasAsBenevolentUser the user's public mantras stay
    published under an anonymized account.
    """
    request = request or DeleteUserRequest()
    user_id = user.id

    try:
        result = await get_user_deletion_service().delete_user(
            user_id,
            save_public_mantras_as_benevolent_user=request.save_public_mantras_as_benevolent_user,
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"❌ Failed to delete account of user {user_id}: {e}")
        raise AppError(ErrorCode.INTERNAL_ERROR, "Failed to delete user", 500, str(e)) from e

    logger.info(f"👋 User {user_id} deleted their account")

    return DeleteUserResponse(message="User deleted successfully", **asdict(result))
