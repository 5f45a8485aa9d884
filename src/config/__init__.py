"""Configuration modules for Mantrify."""

from .auth import (
    AuthSettings,
    get_auth_settings,
    reset_auth_settings,
)
from .settings import (
    AppSettings,
    get_app_settings,
    reset_app_settings,
)

__all__ = [
    'AuthSettings',
    'get_auth_settings',
    'reset_auth_settings',
    'AppSettings',
    'get_app_settings',
    'reset_app_settings',
]
