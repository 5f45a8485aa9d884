"""
Admin Routes

Admin-only endpoints for user, mantra and queue management.
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Body, Depends
from sqlalchemy import select

from src.database.models import (
    VISIBILITY_PUBLIC,
    ContractUsersMantras,
    Mantra,
    Queue,
    User,
)
from src.database.session import get_db_session
from src.dependencies.auth import require_admin
from src.services.mantra_service import MantraService
from src.services.user_deletion_service import get_user_deletion_service
from src.types.errors import AppError, ErrorCode
from src.types.schemas import (
    CamelModel,
    DeleteUserRequest,
    DeleteUserResponse,
    MantraResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


# =============================================================================
# Request/Response Models
# =============================================================================


class AdminUserResponse(CamelModel):
    """User record without password, flagged when it owns public mantras."""
    id: int
    email: str
    is_email_verified: bool
    email_verified_at: datetime | None = None
    is_admin: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    has_public_mantras: bool = False


class AdminUserListResponse(CamelModel):
    users: list[AdminUserResponse]


class AdminMantraResponse(MantraResponse):
    """Mantra with the sum of its per-user listen counts."""
    listens: int = 0


class AdminMantraListResponse(CamelModel):
    mantras: list[AdminMantraResponse]


class MantraDeletedResponse(CamelModel):
    message: str
    mantra_id: int


class QueueRecordResponse(CamelModel):
    id: int
    user_id: int
    status: str
    job_filename: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QueueListResponse(CamelModel):
    queue: list[QueueRecordResponse]


# =============================================================================
# Admin User Endpoints
# =============================================================================


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    admin: Annotated[User, Depends(require_admin)],
):
    """
    List all users with a hasPublicMantras flag.

    Admin-only endpoint.
    """
    async with get_db_session() as db:
        result = await db.execute(select(User).order_by(User.id))
        users = result.scalars().all()

        result = await db.execute(
            select(ContractUsersMantras.user_id)
            .join(Mantra, Mantra.id == ContractUsersMantras.mantra_id)
            .where(Mantra.visibility == VISIBILITY_PUBLIC)
            .distinct()
        )
        with_public = set(result.scalars().all())

    logger.info(f"📋 Admin {admin.id} retrieved {len(users)} users")

    return AdminUserListResponse(users=[
        AdminUserResponse.model_validate(user).model_copy(
            update={"has_public_mantras": user.id in with_public}
        )
        for user in users
    ])


@router.delete("/users/{user_id}", response_model=DeleteUserResponse)
async def delete_user(
    user_id: int,
    admin: Annotated[User, Depends(require_admin)],
    request: Annotated[DeleteUserRequest | None, Body()] = None,
):
    """
    Delete a user and their data.

    With savePublicMantrasAsBenevolentUser the user's public mantras are
    kept and the account is anonymized instead of removed.

    Raises:
        404: User not found
        500: Deletion failed (database changes rolled back)
    """
    request = request or DeleteUserRequest()
    service = get_user_deletion_service()

    try:
        result = await service.delete_user(
            user_id,
            save_public_mantras_as_benevolent_user=request.save_public_mantras_as_benevolent_user,
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"❌ Admin {admin.id} failed to delete user {user_id}: {e}")
        raise AppError(ErrorCode.INTERNAL_ERROR, "Failed to delete user", 500, str(e)) from e

    logger.warning(f"🗑️ Admin {admin.id} deleted user {user_id}")

    return DeleteUserResponse(message="User deleted successfully", **asdict(result))


# =============================================================================
# Admin Mantra Endpoints
# =============================================================================


@router.get("/mantras", response_model=AdminMantraListResponse)
async def list_mantras(
    admin: Annotated[User, Depends(require_admin)],
):
    """List every mantra regardless of visibility, with total listens."""
    rows = await MantraService.list_all_with_listens()

    logger.info(f"📋 Admin {admin.id} retrieved {len(rows)} mantras (all)")

    return AdminMantraListResponse(mantras=[
        AdminMantraResponse.model_validate(row.mantra).model_copy(update={"listens": row.listens})
        for row in rows
    ])


@router.delete("/mantras/{mantra_id}", response_model=MantraDeletedResponse)
async def delete_mantra(
    mantra_id: int,
    admin: Annotated[User, Depends(require_admin)],
):
    """
    Delete any mantra and its MP3 file.

    Raises:
        404: Mantra not found
        500: File could not be removed (record kept)
    """
    await MantraService.delete_mantra(mantra_id)

    logger.info(f"🗑️ Admin {admin.id} deleted mantra {mantra_id}")

    return MantraDeletedResponse(message="Mantra deleted successfully", mantra_id=mantra_id)


# =============================================================================
# Admin Queue Endpoints
# =============================================================================


@router.get("/queuer", response_model=QueueListResponse)
async def list_queue(
    admin: Annotated[User, Depends(require_admin)],
):
    """List all queue records, newest first."""
    async with get_db_session() as db:
        result = await db.execute(select(Queue).order_by(Queue.created_at.desc(), Queue.id.desc()))
        records = result.scalars().all()

    logger.info(f"📋 Admin {admin.id} retrieved {len(records)} queue records")

    return QueueListResponse(queue=[QueueRecordResponse.model_validate(r) for r in records])
