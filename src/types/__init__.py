"""
Mantrify Types Module

Error types and API schemas shared by services and routes.
"""

from .errors import AppError, ErrorCode, QueuerError, UserNotFoundError

__all__ = [
    "AppError",
    "ErrorCode",
    "QueuerError",
    "UserNotFoundError",
]
