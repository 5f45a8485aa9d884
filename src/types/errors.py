"""
Mantrify Error Types

Application errors raised by services and routes and rendered by the
FastAPI exception handler registered in src.api.server.

Error response body:
    {"error": {"code": "USER_NOT_FOUND", "message": "User not found", "status": 404}}

Missing or undeletable files are not errors: the deletion workflow logs
them as warnings and carries on.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API clients."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_FAILED = "AUTH_FAILED"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MANTRA_NOT_FOUND = "MANTRA_NOT_FOUND"
    SOUND_FILE_NOT_FOUND = "SOUND_FILE_NOT_FOUND"
    SOUND_FILE_IN_USE = "SOUND_FILE_IN_USE"
    NOT_FOUND = "NOT_FOUND"
    QUEUER_ERROR = "QUEUER_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base exception for errors surfaced to API clients."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self, include_details: bool = False) -> dict:
        body = {
            "code": self.code.value,
            "message": self.message,
            "status": self.status_code,
        }
        if include_details and self.details is not None:
            body["details"] = self.details
        return {"error": body}


class UserNotFoundError(AppError):
    """The target user of an operation does not exist."""

    def __init__(self, user_id: int):
        super().__init__(ErrorCode.USER_NOT_FOUND, "User not found", 404)
        self.user_id = user_id


class QueuerError(AppError):
    """The queuer service rejected or failed a job submission."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[Any] = None):
        super().__init__(ErrorCode.QUEUER_ERROR, message, status_code, details)
