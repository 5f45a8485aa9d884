"""
Sound File Service Layer

Listing and deletion of shared sound files. Deleting a sound file that is
still used by mantras requires explicit confirmation, in which case the
linked mantras are deleted with it.
"""

import logging
import os
from typing import List

from sqlalchemy import delete, select

from src.config.settings import get_app_settings
from src.database.models import ContractMantrasSoundFiles, Mantra, SoundFile
from src.database.session import get_db_session
from src.services.mantra_service import MantraService
from src.types.errors import AppError, ErrorCode
from src.utils.file_paths import RemovalOutcome, remove_file, resolve_mantra_path

logger = logging.getLogger(__name__)


class SoundService:
    """Service for sound file queries and deletion"""

    @staticmethod
    async def list_sound_files() -> List[SoundFile]:
        """Get all sound files ordered by ID."""
        async with get_db_session() as session:
            result = await session.execute(select(SoundFile).order_by(SoundFile.id))
            sound_files = result.scalars().all()

        logger.info(f"Sound files retrieved: {len(sound_files)} files")
        return list(sound_files)

    @staticmethod
    async def delete_sound_file(sound_file_id: int, delete_linked_mantras: bool = False) -> int:
        """
        Delete a sound file from disk and database.

        Args:
            sound_file_id: Sound file to delete
            delete_linked_mantras: Also delete every mantra that uses it

        Returns:
            Number of linked mantras deleted

        Raises:
            AppError 404: Unknown sound file
            AppError 409: Sound file in use and delete_linked_mantras is False
            AppError 500: Sound file directory not configured, or the file
                exists but could not be removed
        """
        settings = get_app_settings()

        async with get_db_session() as session:
            sound_file = await session.get(SoundFile, sound_file_id)
            if sound_file is None:
                raise AppError(ErrorCode.SOUND_FILE_NOT_FOUND, "Sound file not found", 404)

            result = await session.execute(
                select(Mantra.id, Mantra.file_path, Mantra.filename)
                .join(ContractMantrasSoundFiles, ContractMantrasSoundFiles.mantra_id == Mantra.id)
                .where(ContractMantrasSoundFiles.sound_file_id == sound_file_id)
                .distinct()
            )
            linked = result.all()

            if linked and not delete_linked_mantras:
                logger.warning(
                    f"⚠️ Cannot delete sound file {sound_file.filename}: used by {len(linked)} mantra(s)"
                )
                raise AppError(
                    ErrorCode.SOUND_FILE_IN_USE,
                    "Cannot delete sound file because it is being used by mantras",
                    409,
                    f"This sound file is used by {len(linked)} mantra(s). "
                    f"Set deleteLinkedMantras to true to delete them.",
                )

            if not settings.path_mp3_sound_files:
                raise AppError(ErrorCode.INTERNAL_ERROR, "Sound files path not configured", 500)

            if linked:
                logger.info(f"Deleting {len(linked)} mantra(s) linked to sound file {sound_file.filename}")
                for row in linked:
                    full_path = resolve_mantra_path(row.file_path, row.filename, settings.path_mp3_output)
                    if full_path is not None:
                        remove_file(full_path, label="mantra file")
                    elif row.filename:
                        logger.warning(f"⚠️ PATH_MP3_OUTPUT not configured, keeping file of mantra {row.id}")
                await MantraService.delete_mantra_rows(session, [row.id for row in linked])

            sound_path = os.path.join(settings.path_mp3_sound_files, sound_file.filename)
            if remove_file(sound_path, label="sound file") is RemovalOutcome.FAILED:
                raise AppError(ErrorCode.INTERNAL_ERROR, "Failed to delete sound file from server", 500, sound_path)

            await session.execute(
                delete(ContractMantrasSoundFiles).where(ContractMantrasSoundFiles.sound_file_id == sound_file_id)
            )
            await session.delete(sound_file)

        logger.info(
            f"🗑️ Sound file {sound_file_id} deleted"
            f"{f' (with {len(linked)} linked mantra(s))' if linked else ''}"
        )
        return len(linked)
