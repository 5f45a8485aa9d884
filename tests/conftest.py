"""
Pytest configuration and shared fixtures for Mantrify tests
"""
import os

# Must be set before any src module caches settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key"
os.environ["APP_ENV"] = "development"
os.environ.pop("PATH_MP3_OUTPUT", None)
os.environ.pop("PATH_MP3_SOUND_FILES", None)
os.environ.pop("URL_MANTRIFY01QUEUER", None)
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("EMAIL_USER", None)

from typing import AsyncGenerator, Iterable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

import src.services.auth_service as auth_service_module
import src.services.queuer_client as queuer_client_module
import src.services.user_deletion_service as user_deletion_module
from src.config.auth import reset_auth_settings
from src.config.settings import reset_app_settings
from src.database.models import (
    VISIBILITY_PRIVATE,
    ContractMantrasElevenLabsFiles,
    ContractMantrasSoundFiles,
    ContractUserMantraListen,
    ContractUsersMantras,
    ElevenLabsFile,
    Mantra,
    Queue,
    SoundFile,
    User,
)
from src.database.session import configure_engine, dispose_engine, drop_db, get_session_factory, init_db
from src.services.auth_service import get_auth_service


# ============================================================
# Settings / Singletons
# ============================================================

@pytest.fixture(autouse=True)
def reset_globals():
    """Drop cached settings and service singletons around every test"""
    reset_app_settings()
    reset_auth_settings()
    auth_service_module._auth_service = None
    queuer_client_module._queuer_client = None
    user_deletion_module._user_deletion_service = None
    yield
    reset_app_settings()
    reset_auth_settings()
    auth_service_module._auth_service = None
    queuer_client_module._queuer_client = None
    user_deletion_module._user_deletion_service = None


@pytest.fixture
def configure_env(monkeypatch):
    """
    Set environment variables and drop cached settings

    Usage:
        def test_x(configure_env):
            configure_env(PATH_MP3_OUTPUT="/tmp/out")
    """
    def _configure(**values):
        for key, value in values.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))
        reset_app_settings()
        reset_auth_settings()
    return _configure


# ============================================================
# Database
# ============================================================

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def db_engine():
    """In-memory SQLite database with the full schema, shared by all sessions"""
    engine = configure_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    await init_db()
    yield engine
    await drop_db()
    await dispose_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


class DataSeeder:
    """Inserts rows for tests and returns them refreshed"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, *rows):
        async with self.session_factory() as session:
            async with session.begin():
                session.add_all(rows)
            for row in rows:
                await session.refresh(row)
        return rows[0] if len(rows) == 1 else rows

    async def user(
        self,
        email: str = "user@example.com",
        password: Optional[str] = None,
        is_admin: bool = False,
        is_email_verified: bool = True,
        id: Optional[int] = None,
    ) -> User:
        hashed = get_auth_service().hash_password(password) if password else None
        return await self._add(User(
            id=id,
            email=email,
            password=hashed,
            is_admin=is_admin,
            is_email_verified=is_email_verified,
        ))

    async def mantra(
        self,
        owner: Optional[User] = None,
        visibility: str = VISIBILITY_PRIVATE,
        filename: Optional[str] = None,
        file_path: Optional[str] = None,
        title: str = "Morning calm",
        listen_count: int = 0,
    ) -> Mantra:
        mantra = await self._add(Mantra(
            title=title,
            visibility=visibility,
            filename=filename,
            file_path=file_path,
            listen_count=listen_count,
        ))
        if owner is not None:
            await self._add(ContractUsersMantras(user_id=owner.id, mantra_id=mantra.id))
        return mantra

    async def eleven_labs_file(self, directory: str, filename: str, mantras: Iterable[Mantra] = ()) -> ElevenLabsFile:
        clip = await self._add(ElevenLabsFile(
            voice_id="voice-1",
            voice_name="Calm Voice",
            source_text="Breathe in",
            file_path=directory,
            filename=filename,
        ))
        for mantra in mantras:
            await self._add(ContractMantrasElevenLabsFiles(mantra_id=mantra.id, eleven_labs_file_id=clip.id))
        return clip

    async def sound_file(self, filename: str, mantras: Iterable[Mantra] = (), name: str = "Rain") -> SoundFile:
        sound = await self._add(SoundFile(name=name, description="Background", filename=filename))
        for mantra in mantras:
            await self._add(ContractMantrasSoundFiles(mantra_id=mantra.id, sound_file_id=sound.id))
        return sound

    async def listen(self, user: User, mantra: Mantra, listen_count: int = 1, favorite: bool = False):
        return await self._add(ContractUserMantraListen(
            user_id=user.id,
            mantra_id=mantra.id,
            listen_count=listen_count,
            favorite=favorite,
        ))

    async def queue(self, user: User, status: str = "done", job_filename: Optional[str] = None) -> Queue:
        return await self._add(Queue(user_id=user.id, status=status, job_filename=job_filename))


@pytest.fixture
def seed(session_factory) -> DataSeeder:
    return DataSeeder(session_factory)


# ============================================================
# FastAPI Test Client
# ============================================================

@pytest.fixture
async def test_client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """
    FastAPI test client using httpx AsyncClient (lifespan not run)

    Usage:
        async def test_endpoint(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from src.api.server import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


def _bearer(user: User) -> dict:
    token = get_auth_service().create_access_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """
    Build a Bearer header carrying a fresh access token

    Usage:
        response = await test_client.get("/api/auth/me", headers=auth_headers(user))
    """
    return _bearer
