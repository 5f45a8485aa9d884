"""
Unit tests for UserDeletionService

Tests planning, best-effort file cleanup, the single-transaction database
cleanup, benevolent-user anonymization and per-user serialization against
an in-memory SQLite database and files under tmp_path.
"""
import asyncio
import logging
import os
import threading
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from src.database.models import (
    VISIBILITY_PRIVATE,
    VISIBILITY_PUBLIC,
    ContractMantrasElevenLabsFiles,
    ContractUserMantraListen,
    ContractUsersMantras,
    ElevenLabsFile,
    Mantra,
    Queue,
    User,
)
from src.services.user_deletion_service import (
    DeleteUserResult,
    UserDeletionService,
    benevolent_email,
)
from src.types.errors import UserNotFoundError


async def count(session_factory, model, *where) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model).where(*where))
        return result.scalar_one()


async def fetch_user(session_factory, user_id):
    async with session_factory() as session:
        return await session.get(User, user_id)


def touch(directory, filename) -> str:
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    with open(path, "wb") as f:
        f.write(b"ID3")
    return path


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "mantras"
    path.mkdir()
    return str(path)


@pytest.fixture
def eleven_dir(tmp_path):
    path = tmp_path / "eleven_labs"
    path.mkdir()
    return str(path)


@pytest.fixture
def service(session_factory, output_dir):
    return UserDeletionService(session_factory=session_factory, output_dir=output_dir)


async def seed_owned_mantra(seed, owner, visibility, output_dir, name):
    """Mantra with a rendered file in the fallback output directory"""
    touch(output_dir, f"{name}.mp3")
    return await seed.mantra(owner=owner, visibility=visibility, filename=f"{name}.mp3")


# ============================================================
# Result
# ============================================================

@pytest.mark.unit
def test_result_serializes_with_camel_case_keys():
    """Test the caller-facing result shape"""
    result = DeleteUserResult(
        user_id=5,
        mantras_deleted=8,
        eleven_labs_files_deleted=9,
        benevolent_user_created=False,
    )

    assert result.to_dict() == {
        "userId": 5,
        "mantrasDeleted": 8,
        "elevenLabsFilesDeleted": 9,
        "benevolentUserCreated": False,
    }


@pytest.mark.unit
def test_benevolent_email_format():
    """Test the synthetic address is deterministic"""
    assert benevolent_email(42) == "BenevolentUser42@go-lightly.love"


# ============================================================
# Users Without Mantras
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_user_without_mantras(service, seed, session_factory):
    """Test listen and queue rows are purged even when nothing is owned"""
    user = await seed.user(email="empty@example.com")
    other = await seed.user(email="other@example.com")
    public = await seed.mantra(owner=other, visibility=VISIBILITY_PUBLIC)
    await seed.listen(user, public, listen_count=3)
    await seed.queue(user)
    await seed.queue(user, status="failed")

    result = await service.delete_user(user.id)

    assert result == DeleteUserResult(
        user_id=user.id,
        mantras_deleted=0,
        eleven_labs_files_deleted=0,
        benevolent_user_created=False,
    )
    assert await fetch_user(session_factory, user.id) is None
    assert await count(session_factory, ContractUserMantraListen, ContractUserMantraListen.user_id == user.id) == 0
    assert await count(session_factory, Queue, Queue.user_id == user.id) == 0
    # Other user's mantra untouched
    assert await count(session_factory, Mantra) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_anonymize_user_without_mantras(service, seed, session_factory):
    """Test anonymization keeps the row and rewrites the email"""
    user = await seed.user(email="quiet@example.com")
    await seed.queue(user)

    result = await service.delete_user(user.id, save_public_mantras_as_benevolent_user=True)

    assert result.mantras_deleted == 0
    assert result.benevolent_user_created is True
    remaining = await fetch_user(session_factory, user.id)
    assert remaining.email == benevolent_email(user.id)
    assert await count(session_factory, Queue, Queue.user_id == user.id) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_user_raises_and_touches_nothing(service, seed, session_factory, output_dir):
    """Test a missing user fails before any side effect"""
    owner = await seed.user()
    mantra = await seed_owned_mantra(seed, owner, VISIBILITY_PRIVATE, output_dir, "keep")

    with pytest.raises(UserNotFoundError) as exc_info:
        await service.delete_user(9999)

    assert exc_info.value.status_code == 404
    assert await count(session_factory, Mantra, Mantra.id == mantra.id) == 1
    assert os.path.exists(os.path.join(output_dir, "keep.mp3"))


# ============================================================
# Anonymization
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_anonymize_with_only_public_mantras(service, seed, session_factory, output_dir, eleven_dir):
    """Test public mantras, their assets and files survive anonymization"""
    user = await seed.user(email="sharer@example.com")
    first = await seed_owned_mantra(seed, user, VISIBILITY_PUBLIC, output_dir, "first")
    second = await seed_owned_mantra(seed, user, VISIBILITY_PUBLIC, output_dir, "second")
    touch(eleven_dir, "clip.mp3")
    await seed.eleven_labs_file(eleven_dir, "clip.mp3", mantras=[first, second])

    result = await service.delete_user(user.id, save_public_mantras_as_benevolent_user=True)

    assert result.to_dict() == {
        "userId": user.id,
        "mantrasDeleted": 0,
        "elevenLabsFilesDeleted": 0,
        "benevolentUserCreated": True,
    }
    assert await count(session_factory, Mantra) == 2
    assert await count(session_factory, ElevenLabsFile) == 1
    assert await count(session_factory, ContractUsersMantras, ContractUsersMantras.user_id == user.id) == 2
    assert os.path.exists(os.path.join(output_dir, "first.mp3"))
    assert os.path.exists(os.path.join(eleven_dir, "clip.mp3"))
    assert (await fetch_user(session_factory, user.id)).email == benevolent_email(user.id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_anonymize_deletes_only_private_mantras(service, seed, session_factory, output_dir):
    """Test N private are deleted and M public remain"""
    user = await seed.user(email="mixed@example.com")
    private = [await seed_owned_mantra(seed, user, VISIBILITY_PRIVATE, output_dir, f"p{i}") for i in range(2)]
    public = [await seed_owned_mantra(seed, user, VISIBILITY_PUBLIC, output_dir, f"pub{i}") for i in range(3)]
    for mantra in private + public:
        await seed.listen(user, mantra, listen_count=2)

    result = await service.delete_user(user.id, save_public_mantras_as_benevolent_user=True)

    assert result.mantras_deleted == 2
    remaining = await count(session_factory, Mantra, Mantra.id.in_([m.id for m in public]))
    assert remaining == 3
    assert await count(session_factory, Mantra, Mantra.id.in_([m.id for m in private])) == 0
    assert await count(session_factory, ContractUserMantraListen, ContractUserMantraListen.user_id == user.id) == 0
    assert not os.path.exists(os.path.join(output_dir, "p0.mp3"))
    assert os.path.exists(os.path.join(output_dir, "pub0.mp3"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_anonymized_admin_loses_admin_flag(service, seed, session_factory):
    """Test user 42 becomes BenevolentUser42 and is no longer an admin"""
    await seed.user(id=42, email="admin@example.com", is_admin=True)

    await service.delete_user(42, save_public_mantras_as_benevolent_user=True)

    user = await fetch_user(session_factory, 42)
    assert user.email == "BenevolentUser42@go-lightly.love"
    assert user.is_admin is False


# ============================================================
# Filesystem Cleanup
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_files_do_not_fail_deletion(service, seed, session_factory, eleven_dir, caplog):
    """Test records are deleted even when their files are already gone"""
    user = await seed.user()
    mantra = await seed.mantra(owner=user, filename="gone.mp3")
    await seed.eleven_labs_file(eleven_dir, "gone-clip.mp3", mantras=[mantra])

    with caplog.at_level(logging.WARNING):
        result = await service.delete_user(user.id)

    assert result.mantras_deleted == 1
    assert result.eleven_labs_files_deleted == 0
    assert await count(session_factory, ElevenLabsFile) == 0
    assert "not found" in caplog.text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_cleanup_is_idempotent(service, seed, eleven_dir, output_dir):
    """Test running the file stage twice never raises"""
    user = await seed.user()
    mantra = await seed_owned_mantra(seed, user, VISIBILITY_PRIVATE, output_dir, "twice")
    touch(eleven_dir, "twice-clip.mp3")
    await seed.eleven_labs_file(eleven_dir, "twice-clip.mp3", mantras=[mantra])

    plan = await service.plan_deletion(user.id, anonymize=False)
    first = service.remove_files(plan)
    second = service.remove_files(plan)

    assert (first.eleven_labs_files_deleted, first.mantra_files_deleted) == (1, 1)
    assert (second.eleven_labs_files_deleted, second.mantra_files_deleted) == (0, 0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stored_file_path_wins_over_output_dir(service, seed, tmp_path):
    """Test a mantra's own directory is used when present"""
    custom_dir = str(tmp_path / "custom")
    touch(custom_dir, "own.mp3")
    user = await seed.user()
    await seed.mantra(owner=user, filename="own.mp3", file_path=custom_dir)

    await service.delete_user(user.id)

    assert not os.path.exists(os.path.join(custom_dir, "own.mp3"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unconfigured_output_dir_skips_mantra_files(session_factory, seed, caplog):
    """Test mantras without a stored directory are skipped when no fallback exists"""
    service = UserDeletionService(session_factory=session_factory, output_dir=None)
    user = await seed.user()
    await seed.mantra(owner=user, filename="orphan.mp3")

    with caplog.at_level(logging.WARNING):
        result = await service.delete_user(user.id)

    assert result.mantras_deleted == 1
    assert "PATH_MP3_OUTPUT not configured" in caplog.text
    assert await count(session_factory, Mantra) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unlink_failure_is_logged_not_raised(service, seed, session_factory, eleven_dir, caplog):
    """Test an OSError while unlinking is logged and the deletion completes"""
    user = await seed.user()
    mantra = await seed.mantra(owner=user)
    touch(eleven_dir, "locked.mp3")
    await seed.eleven_labs_file(eleven_dir, "locked.mp3", mantras=[mantra])

    with patch("src.utils.file_paths.os.unlink", side_effect=PermissionError("read-only")):
        with caplog.at_level(logging.ERROR):
            result = await service.delete_user(user.id)

    assert result.eleven_labs_files_deleted == 0
    assert "Failed to delete ElevenLabs file" in caplog.text
    assert await fetch_user(session_factory, user.id) is None


# ============================================================
# Transaction
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_failure_rolls_back_every_database_step(service, seed, session_factory, output_dir, eleven_dir):
    """Test a failing queue delete leaves assets, mantras, listens and user in place"""
    user = await seed.user()
    mantra = await seed_owned_mantra(seed, user, VISIBILITY_PRIVATE, output_dir, "atomic")
    touch(eleven_dir, "atomic-clip.mp3")
    await seed.eleven_labs_file(eleven_dir, "atomic-clip.mp3", mantras=[mantra])
    await seed.listen(user, mantra)
    await seed.queue(user)

    failing = AsyncMock(side_effect=SQLAlchemyError("queue table locked"))
    with patch.object(UserDeletionService, "_delete_queue_records", failing):
        with pytest.raises(SQLAlchemyError):
            await service.delete_user(user.id)

    failing.assert_awaited_once()
    assert await count(session_factory, ElevenLabsFile) == 1
    assert await count(session_factory, ContractMantrasElevenLabsFiles) == 1
    assert await count(session_factory, Mantra) == 1
    assert await count(session_factory, ContractUsersMantras) == 1
    assert await count(session_factory, ContractUserMantraListen) == 1
    assert await count(session_factory, Queue) == 1
    assert await fetch_user(session_factory, user.id) is not None
    # Files are removed before the transaction and stay removed
    assert not os.path.exists(os.path.join(output_dir, "atomic.mp3"))
    assert not os.path.exists(os.path.join(eleven_dir, "atomic-clip.mp3"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mantra_count_comes_from_deleted_rows(service, seed):
    """Test ownership rows pointing at missing mantras are not counted"""
    user = await seed.user()
    await seed.mantra(owner=user)

    plan = await service.plan_deletion(user.id, anonymize=False)
    plan.mantra_ids.append(123456)

    assert await service.apply_database_cleanup(plan) == 1


# ============================================================
# Shared Assets / Concurrency
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_asset_shared_outside_batch_is_deleted_with_warning(service, seed, session_factory, eleven_dir, caplog):
    """Test a clip also used by a preserved public mantra is still deleted, with a warning"""
    user = await seed.user()
    private = await seed.mantra(owner=user, visibility=VISIBILITY_PRIVATE)
    public = await seed.mantra(owner=user, visibility=VISIBILITY_PUBLIC)
    touch(eleven_dir, "shared.mp3")
    await seed.eleven_labs_file(eleven_dir, "shared.mp3", mantras=[private, public])

    with caplog.at_level(logging.WARNING):
        result = await service.delete_user(user.id, save_public_mantras_as_benevolent_user=True)

    assert result.eleven_labs_files_deleted == 1
    assert "also used by mantras outside this deletion" in caplog.text
    assert await count(session_factory, ElevenLabsFile) == 0
    assert await count(session_factory, Mantra, Mantra.id == public.id) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_requests_are_serialized(service, seed, session_factory):
    """Test the second of two concurrent deletions sees the user already gone"""
    user = await seed.user()
    await seed.mantra(owner=user)

    results = await asyncio.gather(
        service.delete_user(user.id),
        service.delete_user(user.id),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, DeleteUserResult)]
    failures = [r for r in results if isinstance(r, UserNotFoundError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert successes[0].mantras_deleted == 1


# ============================================================
# Full Scenario
# ============================================================

async def seed_user_five(seed, output_dir, eleven_dir):
    """
    User 5 owns 3 private and 5 public mantras linked to 9 distinct clips.

    Clips 0-2 belong to the private mantras only; clips 3-8 to public ones.
    User 6 owns an unrelated mantra and listens to one of user 5's.
    """
    user = await seed.user(id=5, email="five@example.com")
    other = await seed.user(id=6, email="six@example.com")

    private = [await seed_owned_mantra(seed, user, VISIBILITY_PRIVATE, output_dir, f"five-private-{i}") for i in range(3)]
    public = [await seed_owned_mantra(seed, user, VISIBILITY_PUBLIC, output_dir, f"five-public-{i}") for i in range(5)]

    for i, mantra in enumerate(private):
        touch(eleven_dir, f"clip-{i}.mp3")
        await seed.eleven_labs_file(eleven_dir, f"clip-{i}.mp3", mantras=[mantra])
    for i, mantra in enumerate(public):
        touch(eleven_dir, f"clip-{i + 3}.mp3")
        await seed.eleven_labs_file(eleven_dir, f"clip-{i + 3}.mp3", mantras=[mantra])
    touch(eleven_dir, "clip-8.mp3")
    await seed.eleven_labs_file(eleven_dir, "clip-8.mp3", mantras=[public[0], public[4]])

    others_mantra = await seed_owned_mantra(seed, other, VISIBILITY_PUBLIC, output_dir, "six")
    await seed.listen(user, others_mantra, listen_count=4)
    await seed.listen(user, private[0], listen_count=1)
    await seed.listen(other, public[1], listen_count=2)
    await seed.queue(user)
    await seed.queue(user, status="processing")
    await seed.queue(other)

    return user, other, private, public


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scenario_full_delete(service, seed, session_factory, output_dir, eleven_dir):
    """Test user 5 full deletion removes 8 mantras and 9 clips"""
    await seed_user_five(seed, output_dir, eleven_dir)

    result = await service.delete_user(5)

    assert result.to_dict() == {
        "userId": 5,
        "mantrasDeleted": 8,
        "elevenLabsFilesDeleted": 9,
        "benevolentUserCreated": False,
    }
    assert await fetch_user(session_factory, 5) is None
    assert await fetch_user(session_factory, 6) is not None
    assert await count(session_factory, Mantra) == 1
    assert await count(session_factory, ElevenLabsFile) == 0
    assert os.listdir(eleven_dir) == []
    assert sorted(os.listdir(output_dir)) == ["six.mp3"]
    assert await count(session_factory, ContractUserMantraListen, ContractUserMantraListen.user_id == 5) == 0
    assert await count(session_factory, Queue, Queue.user_id == 5) == 0
    assert await count(session_factory, Queue, Queue.user_id == 6) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scenario_anonymize(service, seed, session_factory, output_dir, eleven_dir):
    """Test user 5 anonymization removes only private mantras and their clips"""
    _, _, private, public = await seed_user_five(seed, output_dir, eleven_dir)

    result = await service.delete_user(5, save_public_mantras_as_benevolent_user=True)

    assert result.to_dict() == {
        "userId": 5,
        "mantrasDeleted": 3,
        "elevenLabsFilesDeleted": 3,
        "benevolentUserCreated": True,
    }
    assert await count(session_factory, Mantra, Mantra.id.in_([m.id for m in private])) == 0
    assert await count(session_factory, Mantra, Mantra.id.in_([m.id for m in public])) == 5
    assert await count(session_factory, ElevenLabsFile) == 6
    assert sorted(os.listdir(eleven_dir)) == [f"clip-{i}.mp3" for i in range(3, 9)]
    for i in range(5):
        assert os.path.exists(os.path.join(output_dir, f"five-public-{i}.mp3"))
    assert await count(session_factory, ContractUserMantraListen, ContractUserMantraListen.user_id == 5) == 0
    # Other users' engagement with preserved mantras stays
    assert await count(session_factory, ContractUserMantraListen, ContractUserMantraListen.user_id == 6) == 1
    assert await count(session_factory, Queue, Queue.user_id == 5) == 0

    user = await fetch_user(session_factory, 5)
    assert user.email == "BenevolentUser5@go-lightly.love"
    assert user.is_admin is False


@pytest.mark.unit
def test_output_dir_defaults_to_settings(session_factory, configure_env, tmp_path):
    """Test the fallback directory comes from settings unless given explicitly"""
    configure_env(PATH_MP3_OUTPUT=str(tmp_path))

    assert UserDeletionService(session_factory=session_factory).output_dir == str(tmp_path)
    assert UserDeletionService(session_factory=session_factory, output_dir=None).output_dir is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_cleanup_runs_off_event_loop(service, seed):
    """Test file removal runs in an executor thread, before the transaction"""
    calls = []
    original_remove = UserDeletionService.remove_files
    original_cleanup = UserDeletionService.apply_database_cleanup

    def recording_remove(self, plan):
        calls.append(("files", threading.get_ident()))
        return original_remove(self, plan)

    async def recording_cleanup(self, plan):
        calls.append(("database", threading.get_ident()))
        return await original_cleanup(self, plan)

    user = await seed.user()
    with patch.object(UserDeletionService, "remove_files", recording_remove), \
            patch.object(UserDeletionService, "apply_database_cleanup", recording_cleanup):
        await service.delete_user(user.id)

    assert [stage for stage, _ in calls] == ["files", "database"]
    assert calls[0][1] != threading.get_ident()
    assert calls[1][1] == threading.get_ident()
