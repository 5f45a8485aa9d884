"""
Mantra Service Layer

Business logic for mantras: listing with ownership, streaming access checks
and listen counting, favorites, owner edits and single-mantra deletion.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import get_app_settings
from src.database.models import (
    VISIBILITY_PRIVATE,
    VISIBILITY_PUBLIC,
    ContractMantrasElevenLabsFiles,
    ContractMantrasSoundFiles,
    ContractUserMantraListen,
    ContractUsersMantras,
    Mantra,
)
from src.database.session import get_db_session
from src.types.errors import AppError, ErrorCode
from src.utils.file_paths import RemovalOutcome, remove_file, resolve_mantra_path

logger = logging.getLogger(__name__)

VISIBILITIES = (VISIBILITY_PUBLIC, VISIBILITY_PRIVATE)


@dataclass
class MantraListing:
    """A mantra with its owner (None when no ownership row exists)."""
    mantra: Mantra
    owner_user_id: Optional[int]


@dataclass
class MantraWithListens:
    """A mantra with the sum of its per-user listen counts."""
    mantra: Mantra
    listens: int


def _not_found() -> AppError:
    return AppError(ErrorCode.MANTRA_NOT_FOUND, "Mantra not found", 404)


class MantraService:
    """Service for mantra queries and mutations"""

    @staticmethod
    async def list_visible_mantras(user_id: Optional[int] = None) -> List[MantraListing]:
        """
        Public mantras plus the caller's own private mantras.

        Args:
            user_id: Authenticated caller, or None for anonymous access

        Returns:
            Deduplicated listings ordered by mantra ID
        """
        async with get_db_session() as session:
            visible = Mantra.visibility != VISIBILITY_PRIVATE
            if user_id is not None:
                owned = select(ContractUsersMantras.mantra_id).where(ContractUsersMantras.user_id == user_id)
                visible = visible | Mantra.id.in_(owned)

            result = await session.execute(select(Mantra).where(visible).order_by(Mantra.id))
            mantras = result.scalars().all()
            owners = await MantraService._owners(session, [m.id for m in mantras])

        return [MantraListing(mantra=m, owner_user_id=owners.get(m.id)) for m in mantras]

    @staticmethod
    async def _owners(session: AsyncSession, mantra_ids: List[int]) -> Dict[int, int]:
        if not mantra_ids:
            return {}
        result = await session.execute(
            select(ContractUsersMantras.mantra_id, ContractUsersMantras.user_id)
            .where(ContractUsersMantras.mantra_id.in_(mantra_ids))
            .order_by(ContractUsersMantras.id)
        )
        owners: Dict[int, int] = {}
        for mantra_id, owner_id in result:
            owners.setdefault(mantra_id, owner_id)
        return owners

    @staticmethod
    async def list_all_with_listens() -> List[MantraWithListens]:
        """All mantras regardless of visibility, each with total per-user listens."""
        async with get_db_session() as session:
            result = await session.execute(select(Mantra).order_by(Mantra.id))
            mantras = result.scalars().all()

            result = await session.execute(
                select(
                    ContractUserMantraListen.mantra_id,
                    func.coalesce(func.sum(ContractUserMantraListen.listen_count), 0),
                ).group_by(ContractUserMantraListen.mantra_id)
            )
            listens = {mantra_id: int(total) for mantra_id, total in result}

        return [MantraWithListens(mantra=m, listens=listens.get(m.id, 0)) for m in mantras]

    @staticmethod
    async def is_owner(session: AsyncSession, user_id: int, mantra_id: int) -> bool:
        result = await session.execute(
            select(ContractUsersMantras.id).where(
                ContractUsersMantras.user_id == user_id,
                ContractUsersMantras.mantra_id == mantra_id,
            )
        )
        return result.first() is not None

    @staticmethod
    async def prepare_stream(mantra_id: int, user_id: Optional[int] = None) -> str:
        """
        Authorize a stream request, count the listen and return the MP3 path.

        Private mantras are only streamable by their owner. Anonymous listens
        only increment the mantra total; authenticated listens also increment
        the caller's per-user counter.

        Raises:
            AppError 404: Unknown mantra or audio file missing on disk
            AppError 401: Private mantra without authentication
            AppError 403: Private mantra owned by someone else
            AppError 500: No filename stored or output directory not configured
        """
        async with get_db_session() as session:
            mantra = await session.get(Mantra, mantra_id)
            if mantra is None:
                raise _not_found()

            if mantra.visibility == VISIBILITY_PRIVATE:
                if user_id is None:
                    raise AppError(
                        ErrorCode.AUTH_FAILED, "Authentication required to access private mantras", 401
                    )
                if not await MantraService.is_owner(session, user_id, mantra_id):
                    raise AppError(
                        ErrorCode.UNAUTHORIZED_ACCESS, "You do not have permission to access this mantra", 403
                    )

            if not mantra.filename:
                raise AppError(ErrorCode.INTERNAL_ERROR, "Mantra file information not found", 500)

            full_path = resolve_mantra_path(
                mantra.file_path, mantra.filename, get_app_settings().path_mp3_output
            )
            if full_path is None:
                raise AppError(ErrorCode.INTERNAL_ERROR, "Mantra output path not configured", 500)

            if not os.path.isfile(full_path):
                logger.error(f"❌ Mantra file not found: {full_path}")
                raise AppError(ErrorCode.MANTRA_NOT_FOUND, "Mantra audio file not found", 404)

            if user_id is not None:
                listen = await MantraService._get_listen(session, user_id, mantra_id)
                if listen is None:
                    session.add(ContractUserMantraListen(user_id=user_id, mantra_id=mantra_id, listen_count=1))
                else:
                    listen.listen_count = (listen.listen_count or 0) + 1

            await session.execute(
                update(Mantra)
                .where(Mantra.id == mantra_id)
                .values(listen_count=func.coalesce(Mantra.listen_count, 0) + 1)
            )

        logger.info(f"🎧 Mantra {mantra_id} streamed {'by user ' + str(user_id) if user_id else 'anonymously'}")
        return full_path

    @staticmethod
    async def _get_listen(session: AsyncSession, user_id: int, mantra_id: int) -> Optional[ContractUserMantraListen]:
        result = await session.execute(
            select(ContractUserMantraListen).where(
                ContractUserMantraListen.user_id == user_id,
                ContractUserMantraListen.mantra_id == mantra_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def set_favorite(user_id: int, mantra_id: int, favorite: bool) -> None:
        """
        Mark or unmark a mantra as a favorite of the user.

        Raises:
            AppError 404: Unknown mantra
        """
        async with get_db_session() as session:
            if await session.get(Mantra, mantra_id) is None:
                raise _not_found()

            listen = await MantraService._get_listen(session, user_id, mantra_id)
            if listen is None:
                session.add(ContractUserMantraListen(
                    user_id=user_id, mantra_id=mantra_id, listen_count=0, favorite=favorite
                ))
            else:
                listen.favorite = favorite

        logger.info(f"User {user_id} {'favorited' if favorite else 'unfavorited'} mantra {mantra_id}")

    @staticmethod
    async def update_mantra(
        user_id: int,
        mantra_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        visibility: Optional[str] = None,
    ) -> Mantra:
        """
        Update the editable fields of a mantra owned by the user.

        Raises:
            AppError 400: No field given, empty title or unknown visibility
            AppError 403: Caller does not own the mantra
            AppError 404: Unknown mantra
        """
        if title is None and description is None and visibility is None:
            raise AppError(
                ErrorCode.VALIDATION_ERROR,
                "At least one field (title, description, visibility) must be provided",
                400,
            )
        if title is not None and not title.strip():
            raise AppError(ErrorCode.VALIDATION_ERROR, "Title must be a non-empty string", 400)
        if visibility is not None and visibility not in VISIBILITIES:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Visibility must be 'public' or 'private'", 400)

        async with get_db_session() as session:
            mantra = await session.get(Mantra, mantra_id)
            if mantra is None:
                raise _not_found()
            if not await MantraService.is_owner(session, user_id, mantra_id):
                raise AppError(
                    ErrorCode.UNAUTHORIZED_ACCESS, "You do not have permission to update this mantra", 403
                )

            if title is not None:
                mantra.title = title.strip()
            if description is not None:
                mantra.description = description
            if visibility is not None:
                mantra.visibility = visibility
            await session.flush()
            await session.refresh(mantra)

        logger.info(f"✏️ Mantra {mantra_id} updated by user {user_id}")
        return mantra

    @staticmethod
    async def delete_mantra(mantra_id: int, owner_id: Optional[int] = None) -> None:
        """
        Delete a mantra's MP3 file and its record.

        Args:
            mantra_id: Mantra to delete
            owner_id: When given, the caller must own the mantra (admins pass None)

        Raises:
            AppError 403: owner_id given and not the owner
            AppError 404: Unknown mantra
            AppError 500: Output directory not configured, or the file exists
                but could not be removed (the record is kept)
        """
        async with get_db_session() as session:
            if owner_id is not None and not await MantraService.is_owner(session, owner_id, mantra_id):
                raise AppError(
                    ErrorCode.UNAUTHORIZED_ACCESS, "You do not have permission to delete this mantra", 403
                )

            mantra = await session.get(Mantra, mantra_id)
            if mantra is None:
                raise _not_found()

            if mantra.filename:
                full_path = resolve_mantra_path(
                    mantra.file_path, mantra.filename, get_app_settings().path_mp3_output
                )
                if full_path is None:
                    raise AppError(ErrorCode.INTERNAL_ERROR, "Mantra output path not configured", 500)
                if remove_file(full_path, label="mantra file") is RemovalOutcome.FAILED:
                    raise AppError(ErrorCode.INTERNAL_ERROR, "Failed to delete mantra file", 500, full_path)

            await MantraService.delete_mantra_rows(session, [mantra_id])

        logger.info(f"🗑️ Mantra {mantra_id} deleted{f' by user {owner_id}' if owner_id else ''}")

    @staticmethod
    async def delete_mantra_rows(session: AsyncSession, mantra_ids: List[int]) -> int:
        """Delete mantra records and every link row pointing at them. Returns mantras deleted."""
        if not mantra_ids:
            return 0
        for child in (
            ContractMantrasElevenLabsFiles,
            ContractMantrasSoundFiles,
            ContractUsersMantras,
            ContractUserMantraListen,
        ):
            await session.execute(
                delete(child)
                .where(child.mantra_id.in_(mantra_ids))
                .execution_options(synchronize_session=False)
            )
        result = await session.execute(
            delete(Mantra)
            .where(Mantra.id.in_(mantra_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
