"""
Mantrify - Database Module

Exports models, session management, and utilities.

Usage:
    from src.database import User, Mantra
    from src.database import get_db_session, init_db
"""

from src.database.models import (
    Base,
    User,
    Mantra,
    ContractUsersMantras,
    ContractUserMantraListen,
    ElevenLabsFile,
    ContractMantrasElevenLabsFiles,
    SoundFile,
    ContractMantrasSoundFiles,
    Queue,
)
from src.database.session import (
    configure_engine,
    get_engine,
    get_session_factory,
    dispose_engine,
    get_db_session,
    init_db,
    drop_db,
    check_db_connection,
)

__all__ = [
    # Models
    "Base",
    "User",
    "Mantra",
    "ContractUsersMantras",
    "ContractUserMantraListen",
    "ElevenLabsFile",
    "ContractMantrasElevenLabsFiles",
    "SoundFile",
    "ContractMantrasSoundFiles",
    "Queue",
    # Session management
    "configure_engine",
    "get_engine",
    "get_session_factory",
    "dispose_engine",
    "get_db_session",
    "init_db",
    "drop_db",
    "check_db_connection",
]
