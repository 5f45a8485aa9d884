"""
Sound Routes

Shared sound file listing and deletion.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends

from src.database.models import User
from src.dependencies.auth import get_current_user
from src.services.sound_service import SoundService
from src.types.schemas import CamelModel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sounds", tags=["sounds"])


# =============================================================================
# Request/Response Models
# =============================================================================


class SoundFileResponse(CamelModel):
    id: int
    name: str
    description: str | None = None
    filename: str


class SoundFileListResponse(CamelModel):
    sound_files: list[SoundFileResponse]


class DeleteSoundFileRequest(CamelModel):
    delete_linked_mantras: bool = False


class DeleteSoundFileResponse(CamelModel):
    message: str
    sound_file_id: int
    deleted_mantras_count: int


# =============================================================================
# Sound Endpoints
# =============================================================================


@router.get("/sound_files", response_model=SoundFileListResponse)
async def list_sound_files():
    """List all sound files (no authentication required)."""
    sound_files = await SoundService.list_sound_files()
    return SoundFileListResponse(sound_files=[SoundFileResponse.model_validate(s) for s in sound_files])


@router.delete("/sound_file/{sound_file_id}", response_model=DeleteSoundFileResponse)
async def delete_sound_file(
    sound_file_id: int,
    user: Annotated[User, Depends(get_current_user)],
    request: Annotated[DeleteSoundFileRequest | None, Body()] = None,
):
    """
    Delete a sound file, optionally with the mantras that use it.

    Raises:
        404: Sound file not found
        409: Sound file in use and deleteLinkedMantras is false
    """
    request = request or DeleteSoundFileRequest()

    deleted = await SoundService.delete_sound_file(
        sound_file_id,
        delete_linked_mantras=request.delete_linked_mantras,
    )

    logger.info(f"🗑️ Sound file {sound_file_id} deleted by user {user.id}")

    return DeleteSoundFileResponse(
        message="Sound file deleted successfully",
        sound_file_id=sound_file_id,
        deleted_mantras_count=deleted,
    )
