"""
Mantrify Services Package

This package contains service layer implementations for Mantrify:
- user_deletion_service: Cascading account deletion and benevolent-user anonymization
- mantra_service: Mantra listing, streaming access, favorites, edits and deletion
- sound_service: Shared sound file listing and deletion
- queuer_client: HTTP client for the audio queuer service
- auth_service: Password hashing and JWT tokens
"""

from .auth_service import AuthService, get_auth_service
from .mantra_service import MantraService
from .queuer_client import QueuerClient, QueuerSubmission, get_queuer_client
from .sound_service import SoundService
from .user_deletion_service import (
    DeleteUserResult,
    DeletionPlan,
    FileCleanupResult,
    UserDeletionService,
    get_user_deletion_service,
)

__all__ = [
    "AuthService",
    "get_auth_service",
    "MantraService",
    "QueuerClient",
    "QueuerSubmission",
    "get_queuer_client",
    "SoundService",
    "DeleteUserResult",
    "DeletionPlan",
    "FileCleanupResult",
    "UserDeletionService",
    "get_user_deletion_service",
]
