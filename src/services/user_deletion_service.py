"""
Mantrify - User Deletion Service

Purpose: Remove a user and everything they own, or convert them into a
"benevolent user" whose public mantras stay published under an anonymous
placeholder account.

Stages (strictly sequential, one user at a time):
1. Plan      - read-only lookup of the user, the mantras to delete, the
               ElevenLabs speech files they use and every file path involved
2. Files     - best-effort unlink of ElevenLabs clips and mantra MP3s;
               missing or undeletable files are logged and skipped
3. Database  - one transaction: ElevenLabs records, mantras (with their
               link rows), listen rows, queue rows, then the user record
               itself (deleted, or anonymized)
4. Result    - counts of what was actually removed

Files are removed before the transaction starts and are not restored if the
transaction rolls back. A failed call can therefore leave "files gone,
records present"; it never leaves records deleted for files that were not
attempted.

Sound files are shared across unrelated mantras and are never touched here.

Usage:
    service = UserDeletionService()
    result = await service.delete_user(42, save_public_mantras_as_benevolent_user=True)
    print(result.to_dict())
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.settings import get_app_settings
from src.database.models import (
    VISIBILITY_PRIVATE,
    ContractMantrasElevenLabsFiles,
    ContractUserMantraListen,
    ContractUsersMantras,
    ElevenLabsFile,
    Mantra,
    Queue,
    User,
)
from src.database.session import get_session_factory
from src.services.mantra_service import MantraService
from src.types.errors import UserNotFoundError
from src.utils.file_paths import RemovalOutcome, remove_file, resolve_mantra_path

logger = logging.getLogger(__name__)

# Marks an output_dir left to the settings, distinct from an explicit None
_FROM_SETTINGS = object()

BENEVOLENT_EMAIL_PREFIX = "BenevolentUser"
BENEVOLENT_EMAIL_DOMAIN = "go-lightly.love"


def benevolent_email(user_id: int) -> str:
    """Synthetic address given to an anonymized account."""
    return f"{BENEVOLENT_EMAIL_PREFIX}{user_id}@{BENEVOLENT_EMAIL_DOMAIN}"


@dataclass
class ElevenLabsFileToDelete:
    """ElevenLabs record with its resolved location on disk."""
    id: int
    full_path: str


@dataclass
class MantraFileToDelete:
    """Mantra row fields needed to locate its rendered MP3."""
    id: int
    file_path: Optional[str]
    filename: Optional[str]


@dataclass
class DeletionPlan:
    """
    Everything a deletion run will remove, computed before any mutation.

    Attributes:
        user_id: Target user
        anonymize: Whether the user becomes a benevolent user
        mantra_ids: Mantras to delete (all owned, or only private ones)
        eleven_labs_file_ids: Distinct ElevenLabs records used by those mantras
        eleven_labs_files: Resolved paths of those records
        mantra_files: Location fields of the mantras to delete
    """
    user_id: int
    anonymize: bool
    mantra_ids: List[int] = field(default_factory=list)
    eleven_labs_file_ids: List[int] = field(default_factory=list)
    eleven_labs_files: List[ElevenLabsFileToDelete] = field(default_factory=list)
    mantra_files: List[MantraFileToDelete] = field(default_factory=list)


@dataclass
class FileCleanupResult:
    """Files actually removed from disk (missing files are not counted)."""
    eleven_labs_files_deleted: int = 0
    mantra_files_deleted: int = 0


@dataclass
class DeleteUserResult:
    """Caller-facing summary of a completed deletion."""
    user_id: int
    mantras_deleted: int
    eleven_labs_files_deleted: int
    benevolent_user_created: bool

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "mantrasDeleted": self.mantras_deleted,
            "elevenLabsFilesDeleted": self.eleven_labs_files_deleted,
            "benevolentUserCreated": self.benevolent_user_created,
        }


@dataclass
class _UserLock:
    lock: asyncio.Lock
    holders: int = 0


# Per-user locks serializing duplicate deletion requests within this process
_user_locks: Dict[int, _UserLock] = {}


class UserDeletionService:
    """
    Cascading user deletion with optional benevolent-user anonymization.

    Args:
        session_factory: async_sessionmaker to use. Defaults to the shared
            factory from src.database.session (resolved at call time).
        output_dir: Fallback directory of mantra MP3s for mantras without a
            stored file_path. Defaults to AppSettings.path_mp3_output;
            an explicit None disables the fallback.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        output_dir: Optional[str] = _FROM_SETTINGS,
    ):
        self._session_factory = session_factory
        self.output_dir = get_app_settings().path_mp3_output if output_dir is _FROM_SETTINGS else output_dir

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or get_session_factory()

    async def delete_user(
        self,
        user_id: int,
        save_public_mantras_as_benevolent_user: bool = False,
    ) -> DeleteUserResult:
        """
        Delete a user and all associated data.

        Args:
            user_id: The user to delete
            save_public_mantras_as_benevolent_user: Keep public mantras and
                anonymize the user instead of deleting the row

        Returns:
            DeleteUserResult with counts of deleted items

        Raises:
            UserNotFoundError: No user has this ID (nothing was touched)
            SQLAlchemyError: The database transaction failed and was rolled back
        """
        anonymize = save_public_mantras_as_benevolent_user
        logger.info(f"🗑️ Initiating user deletion for user ID: {user_id} (benevolent={anonymize})")

        async with self._user_lock(user_id):
            plan = await self.plan_deletion(user_id, anonymize)
            loop = asyncio.get_event_loop()
            files = await loop.run_in_executor(None, self.remove_files, plan)
            mantras_deleted = await self.apply_database_cleanup(plan)

        logger.info(f"✅ User deletion completed successfully for user ID: {user_id}")

        return DeleteUserResult(
            user_id=user_id,
            mantras_deleted=mantras_deleted,
            eleven_labs_files_deleted=files.eleven_labs_files_deleted,
            benevolent_user_created=anonymize,
        )

    # ------------------------------------------------------------------
    # Stage 1: plan
    # ------------------------------------------------------------------

    async def plan_deletion(self, user_id: int, anonymize: bool) -> DeletionPlan:
        """
        Work out which rows and files a deletion removes. Read-only.

        Raises:
            UserNotFoundError: No user has this ID
        """
        plan = DeletionPlan(user_id=user_id, anonymize=anonymize)

        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            result = await session.execute(
                select(ContractUsersMantras.mantra_id).where(ContractUsersMantras.user_id == user_id)
            )
            owned_ids = sorted(set(result.scalars().all()))

            if not owned_ids:
                logger.info(f"User {user_id} has no mantras to delete")
                return plan

            if anonymize:
                result = await session.execute(
                    select(Mantra.id)
                    .where(Mantra.id.in_(owned_ids), Mantra.visibility == VISIBILITY_PRIVATE)
                    .order_by(Mantra.id)
                )
                plan.mantra_ids = list(result.scalars().all())
                logger.info(f"Found {len(plan.mantra_ids)} private mantra(s) to delete for user {user_id}")
            else:
                plan.mantra_ids = owned_ids
                logger.info(f"Found {len(plan.mantra_ids)} mantra(s) to delete for user {user_id}")

            if not plan.mantra_ids:
                return plan

            # Distinct within this batch only
            result = await session.execute(
                select(ContractMantrasElevenLabsFiles.eleven_labs_file_id)
                .where(ContractMantrasElevenLabsFiles.mantra_id.in_(plan.mantra_ids))
            )
            plan.eleven_labs_file_ids = sorted(set(result.scalars().all()))
            logger.info(
                f"Found {len(plan.eleven_labs_file_ids)} ElevenLabs file(s) associated with mantras to delete"
            )

            if plan.eleven_labs_file_ids:
                result = await session.execute(
                    select(ElevenLabsFile.id, ElevenLabsFile.file_path, ElevenLabsFile.filename)
                    .where(ElevenLabsFile.id.in_(plan.eleven_labs_file_ids))
                    .order_by(ElevenLabsFile.id)
                )
                plan.eleven_labs_files = [
                    ElevenLabsFileToDelete(id=row.id, full_path=os.path.join(row.file_path, row.filename))
                    for row in result
                ]
                await self._warn_about_shared_files(session, plan)

            result = await session.execute(
                select(Mantra.id, Mantra.file_path, Mantra.filename)
                .where(Mantra.id.in_(plan.mantra_ids))
                .order_by(Mantra.id)
            )
            plan.mantra_files = [
                MantraFileToDelete(id=row.id, file_path=row.file_path, filename=row.filename)
                for row in result
            ]

        return plan

    async def _warn_about_shared_files(self, session: AsyncSession, plan: DeletionPlan) -> None:
        # ElevenLabs files still linked to mantras outside this batch are deleted anyway
        result = await session.execute(
            select(ContractMantrasElevenLabsFiles.eleven_labs_file_id)
            .where(
                ContractMantrasElevenLabsFiles.eleven_labs_file_id.in_(plan.eleven_labs_file_ids),
                ContractMantrasElevenLabsFiles.mantra_id.not_in(plan.mantra_ids),
            )
            .distinct()
        )
        shared = sorted(result.scalars().all())
        if shared:
            logger.warning(
                f"⚠️ ElevenLabs file(s) {shared} are also used by mantras outside this deletion "
                f"for user {plan.user_id}; they will be deleted with it"
            )

    # ------------------------------------------------------------------
    # Stage 2: filesystem
    # ------------------------------------------------------------------

    def remove_files(self, plan: DeletionPlan) -> FileCleanupResult:
        """Best-effort removal of every file in the plan. Never raises."""
        cleanup = FileCleanupResult()

        for eleven_labs_file in plan.eleven_labs_files:
            outcome = remove_file(eleven_labs_file.full_path, label="ElevenLabs file")
            if outcome is RemovalOutcome.DELETED:
                cleanup.eleven_labs_files_deleted += 1

        logger.info(
            f"Deleted {cleanup.eleven_labs_files_deleted} of {len(plan.eleven_labs_files)} ElevenLabs file(s)"
        )

        for mantra in plan.mantra_files:
            if not mantra.filename:
                continue
            full_path = resolve_mantra_path(mantra.file_path, mantra.filename, self.output_dir)
            if full_path is None:
                logger.warning(
                    f"⚠️ PATH_MP3_OUTPUT not configured, skipping mantra file deletion for mantra {mantra.id}"
                )
                continue
            outcome = remove_file(full_path, label="mantra file")
            if outcome is RemovalOutcome.DELETED:
                cleanup.mantra_files_deleted += 1

        if plan.mantra_files:
            logger.info(
                f"Deleted {cleanup.mantra_files_deleted} of {len(plan.mantra_files)} mantra MP3 file(s)"
            )

        return cleanup

    # ------------------------------------------------------------------
    # Stage 3: database
    # ------------------------------------------------------------------

    async def apply_database_cleanup(self, plan: DeletionPlan) -> int:
        """
        Apply all row deletions in one transaction.

        Returns:
            Number of mantra rows deleted

        Raises:
            Exception: Whatever the database raised; the transaction is rolled back
        """
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    await self._delete_eleven_labs_records(session, plan.eleven_labs_file_ids)
                    mantras_deleted = await self._delete_mantra_records(session, plan.mantra_ids)
                    await self._delete_listen_records(session, plan.user_id)
                    await self._delete_queue_records(session, plan.user_id)
                    await self._resolve_user_record(session, plan.user_id, plan.anonymize)
            except Exception as e:
                logger.error(f"❌ Failed to delete user {plan.user_id}, transaction rolled back: {e}")
                raise

        return mantras_deleted

    async def _delete_eleven_labs_records(self, session: AsyncSession, file_ids: List[int]) -> None:
        if not file_ids:
            return
        await session.execute(
            delete(ContractMantrasElevenLabsFiles)
            .where(ContractMantrasElevenLabsFiles.eleven_labs_file_id.in_(file_ids))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            delete(ElevenLabsFile)
            .where(ElevenLabsFile.id.in_(file_ids))
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Deleted {result.rowcount} ElevenLabs file record(s) from database")

    async def _delete_mantra_records(self, session: AsyncSession, mantra_ids: List[int]) -> int:
        # Link rows go first, so engines without FK cascades end in the same state
        deleted = await MantraService.delete_mantra_rows(session, mantra_ids)
        if mantra_ids:
            logger.info(f"Deleted {deleted} mantra record(s) from database (with link rows)")
        return deleted

    async def _delete_listen_records(self, session: AsyncSession, user_id: int) -> None:
        result = await session.execute(
            delete(ContractUserMantraListen)
            .where(ContractUserMantraListen.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Deleted {result.rowcount} listen record(s) for user {user_id}")

    async def _delete_queue_records(self, session: AsyncSession, user_id: int) -> None:
        result = await session.execute(
            delete(Queue)
            .where(Queue.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Deleted {result.rowcount} queue record(s) for user {user_id}")

    async def _resolve_user_record(self, session: AsyncSession, user_id: int, anonymize: bool) -> None:
        if anonymize:
            email = benevolent_email(user_id)
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(email=email, is_admin=False)
                .execution_options(synchronize_session=False)
            )
            logger.info(f"User {user_id} converted to benevolent user: {email}")
        else:
            await session.execute(
                delete(User)
                .where(User.id == user_id)
                .execution_options(synchronize_session=False)
            )
            logger.info(f"Deleted user record for user {user_id}")

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _user_lock(self, user_id: int):
        entry = _user_locks.get(user_id)
        if entry is None:
            entry = _user_locks[user_id] = _UserLock(lock=asyncio.Lock())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                _user_locks.pop(user_id, None)


# Global service instance (lazy-loaded)
_user_deletion_service: Optional[UserDeletionService] = None


def get_user_deletion_service() -> UserDeletionService:
    """Get or create the global user deletion service instance."""
    global _user_deletion_service
    if _user_deletion_service is None:
        _user_deletion_service = UserDeletionService()
    return _user_deletion_service
