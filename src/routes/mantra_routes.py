"""
Mantra Routes

Listing, streaming, favorites, creation through the queuer, owner edits
and deletion of mantras.
"""

import logging
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse
from pydantic import Field

from src.database.models import User
from src.dependencies.auth import get_current_user, get_optional_user
from src.services.mantra_service import MantraService
from src.services.queuer_client import get_queuer_client
from src.types.errors import AppError, ErrorCode
from src.types.schemas import CamelModel, MantraResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/mantras", tags=["mantras"])


# =============================================================================
# Request/Response Models
# =============================================================================


class MantraListItem(MantraResponse):
    """Mantra with its owner ("missing" when no ownership row exists)."""
    owner_user_id: int | Literal["missing"] = "missing"


class MantraListResponse(CamelModel):
    mantras_array: list[MantraListItem]


class FavoriteResponse(CamelModel):
    message: str
    mantra_id: int
    favorite: bool


class CreateMantraRequest(CamelModel):
    """Ordered mantra elements forwarded to the queuer."""
    mantra_array: list[dict[str, Any]] = Field(..., description="Text, pause and sound_file elements")


class CreateMantraResponse(CamelModel):
    message: str
    queue_id: int | None = None
    file_path: str | None = None


class UpdateMantraRequest(CamelModel):
    """Editable mantra fields; at least one must be given."""
    title: str | None = None
    description: str | None = None
    visibility: str | None = None


class UpdateMantraResponse(CamelModel):
    message: str
    mantra: MantraResponse


class MantraDeletedResponse(CamelModel):
    message: str
    mantra_id: int


# =============================================================================
# Public Endpoints (optional authentication)
# =============================================================================


@router.get("/all", response_model=MantraListResponse)
async def list_mantras(
    user: Annotated[User | None, Depends(get_optional_user)],
):
    """Public mantras plus the caller's private mantras."""
    user_id = user.id if user else None
    listings = await MantraService.list_visible_mantras(user_id)

    logger.info(
        f"Mantras retrieved{f' for user {user_id}' if user_id else ' anonymously'}: {len(listings)} mantras"
    )

    return MantraListResponse(mantras_array=[
        MantraListItem.model_validate(listing.mantra).model_copy(update={
            "listen_count": listing.mantra.listen_count or 0,
            "owner_user_id": listing.owner_user_id if listing.owner_user_id is not None else "missing",
        })
        for listing in listings
    ])


@router.get("/{mantra_id}/stream")
async def stream_mantra(
    mantra_id: int,
    user: Annotated[User | None, Depends(get_optional_user)],
):
    """
    Stream a mantra's MP3 file (supports HTTP range requests).

    Raises:
        401: Private mantra without authentication
        403: Private mantra of another user
        404: Unknown mantra or missing audio file
    """
    full_path = await MantraService.prepare_stream(mantra_id, user.id if user else None)
    return FileResponse(full_path, media_type="audio/mpeg")


# =============================================================================
# Authenticated Endpoints
# =============================================================================


@router.post("/favorite/{mantra_id}/{true_or_false}", response_model=FavoriteResponse)
async def set_favorite(
    mantra_id: int,
    true_or_false: str,
    user: Annotated[User, Depends(get_current_user)],
):
    """Mark or unmark a mantra as a favorite."""
    if true_or_false not in ("true", "false"):
        raise AppError(
            ErrorCode.VALIDATION_ERROR,
            "trueOrFalse parameter must be 'true' or 'false'",
            400,
        )
    favorite = true_or_false == "true"

    await MantraService.set_favorite(user.id, mantra_id, favorite)

    return FavoriteResponse(
        message=f"Mantra {'favorited' if favorite else 'unfavorited'} successfully",
        mantra_id=mantra_id,
        favorite=favorite,
    )


@router.post("/create", response_model=CreateMantraResponse, status_code=status.HTTP_201_CREATED)
async def create_mantra(
    request: CreateMantraRequest,
    user: Annotated[User, Depends(get_current_user)],
):
    """
    Submit a new mantra to the queuer for rendering.

    Raises:
        500: Queuer URL not configured or queuer unreachable
        4xx/5xx: Status returned by the queuer
    """
    logger.info(f"User {user.id} creating mantra with {len(request.mantra_array)} elements")

    submission = await get_queuer_client().submit("mantras", user.id, request.mantra_array)

    return CreateMantraResponse(
        message="Mantra created successfully",
        queue_id=submission.queue_id,
        file_path=submission.file_path,
    )


@router.patch("/update/{mantra_id}", response_model=UpdateMantraResponse)
async def update_mantra(
    mantra_id: int,
    request: UpdateMantraRequest,
    user: Annotated[User, Depends(get_current_user)],
):
    """Update title, description or visibility of an owned mantra."""
    mantra = await MantraService.update_mantra(
        user.id,
        mantra_id,
        title=request.title,
        description=request.description,
        visibility=request.visibility,
    )
    return UpdateMantraResponse(message="Mantra updated successfully", mantra=MantraResponse.model_validate(mantra))


@router.delete("/{mantra_id}", response_model=MantraDeletedResponse)
async def delete_mantra(
    mantra_id: int,
    user: Annotated[User, Depends(get_current_user)],
):
    """
    Delete an owned mantra and its MP3 file.

    Raises:
        403: Not the owner
        404: Mantra not found
    """
    await MantraService.delete_mantra(mantra_id, owner_id=user.id)
    return MantraDeletedResponse(message="Mantra deleted successfully", mantra_id=mantra_id)
