"""
Authentication Configuration

Environment-based settings for JWT tokens and password hashing.
"""

import os
import secrets
from dataclasses import dataclass


@dataclass
class AuthSettings:
    """Authentication configuration loaded from environment variables."""

    # JWT Configuration
    secret_key: str
    algorithm: str
    access_token_expire_minutes: int

    @classmethod
    def from_env(cls) -> "AuthSettings":
        """Load settings from environment variables."""
        return cls(
            # Random key for development only; AUTH_SECRET_KEY must be set in production
            secret_key=os.getenv(
                "AUTH_SECRET_KEY",
                secrets.token_urlsafe(32)
            ),
            algorithm=os.getenv("AUTH_ALGORITHM", "HS256"),
            # Mobile clients keep their token for weeks between launches
            access_token_expire_minutes=int(os.getenv("AUTH_ACCESS_TOKEN_EXPIRE_MINUTES", "43200")),
        )


# Global settings instance (lazy-loaded)
_settings: AuthSettings | None = None


def get_auth_settings() -> AuthSettings:
    """Get or create the global auth settings instance."""
    global _settings
    if _settings is None:
        _settings = AuthSettings.from_env()
    return _settings


def reset_auth_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
