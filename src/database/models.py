"""
Mantrify - SQLAlchemy ORM Models

Database schema for users, mantras, synthesized speech files, sound files
and queued processing jobs.

Design Decisions:
- Integer primary keys (IDs are exposed in URLs and JWT payloads)
- Ownership and asset links are modelled as contract (join) tables
- Foreign keys cascade on delete where the engine enforces them; the
  deletion workflow also removes child rows explicitly so behaviour does
  not depend on engine cascade support
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func, text

Base = declarative_base()

VISIBILITY_PUBLIC = "public"
VISIBILITY_PRIVATE = "private"


class User(Base):
    """
    Platform account.

    Email is stored lower-cased. A benevolent user is a former account whose
    email has been replaced by a synthetic address so that its public
    mantras can stay published.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=True)  # bcrypt hash, NULL for OAuth-only accounts
    is_email_verified = Column(Boolean, nullable=False, default=False, server_default=text('false'))
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=text('false'))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', is_admin={self.is_admin})>"


class Mantra(Base):
    """
    Composed audio artifact rendered by the queuer.

    file_path is the directory of the rendered MP3; when NULL the file lives
    in the configured PATH_MP3_OUTPUT directory.
    """

    __tablename__ = "mantras"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    visibility = Column(String(20), nullable=False, default=VISIBILITY_PRIVATE, server_default=VISIBILITY_PRIVATE)
    file_path = Column(String(1024), nullable=True)
    filename = Column(String(255), nullable=True)
    listen_count = Column(Integer, nullable=False, default=0, server_default=text('0'))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Mantra(id={self.id}, title='{self.title}', visibility='{self.visibility}')>"


class ContractUsersMantras(Base):
    """Ownership link between a user and a mantra (one owner per mantra in practice)."""

    __tablename__ = "contract_users_mantras"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mantra_id = Column(Integer, ForeignKey("mantras.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<ContractUsersMantras(user_id={self.user_id}, mantra_id={self.mantra_id})>"


class ContractUserMantraListen(Base):
    """Per-user engagement with a mantra: listen counter and favorite flag."""

    __tablename__ = "contract_user_mantra_listens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mantra_id = Column(Integer, ForeignKey("mantras.id", ondelete="CASCADE"), nullable=False, index=True)
    listen_count = Column(Integer, nullable=False, default=0, server_default=text('0'))
    favorite = Column(Boolean, nullable=False, default=False, server_default=text('false'))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "mantra_id", name="uq_listen_user_mantra"),
    )

    def __repr__(self):
        return (
            f"<ContractUserMantraListen(user_id={self.user_id}, mantra_id={self.mantra_id}, "
            f"listen_count={self.listen_count}, favorite={self.favorite})>"
        )


class ElevenLabsFile(Base):
    """Synthesized speech clip produced by ElevenLabs for one or more mantras."""

    __tablename__ = "eleven_labs_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    voice_id = Column(String(100), nullable=True)
    voice_name = Column(String(255), nullable=True)
    source_text = Column(Text, nullable=True)
    file_path = Column(String(1024), nullable=False)
    filename = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ElevenLabsFile(id={self.id}, filename='{self.filename}')>"


class ContractMantrasElevenLabsFiles(Base):
    """Link between a mantra and a synthesized speech clip it uses."""

    __tablename__ = "contract_mantras_eleven_labs_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mantra_id = Column(Integer, ForeignKey("mantras.id", ondelete="CASCADE"), nullable=False, index=True)
    eleven_labs_file_id = Column(
        Integer, ForeignKey("eleven_labs_files.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self):
        return (
            f"<ContractMantrasElevenLabsFiles(mantra_id={self.mantra_id}, "
            f"eleven_labs_file_id={self.eleven_labs_file_id})>"
        )


class SoundFile(Base):
    """
    Shared background/system audio clip.

    Sound files are referenced by many unrelated mantras and are never
    removed by user deletion.
    """

    __tablename__ = "sound_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    filename = Column(String(255), nullable=False, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<SoundFile(id={self.id}, filename='{self.filename}')>"


class ContractMantrasSoundFiles(Base):
    """Link between a mantra and a sound file it uses."""

    __tablename__ = "contract_mantras_sound_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mantra_id = Column(Integer, ForeignKey("mantras.id", ondelete="CASCADE"), nullable=False, index=True)
    sound_file_id = Column(Integer, ForeignKey("sound_files.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<ContractMantrasSoundFiles(mantra_id={self.mantra_id}, sound_file_id={self.sound_file_id})>"


class Queue(Base):
    """Tracking row for a job submitted to the queuer service."""

    __tablename__ = "queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="queued", server_default="queued")
    job_filename = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Queue(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
