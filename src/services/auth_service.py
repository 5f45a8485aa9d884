"""
Authentication Service

Handles password hashing and JWT token operations.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from src.config.auth import AuthSettings, get_auth_settings

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for password hashing and JWT management.

    Usage:
        auth_service = AuthService()

        hashed = auth_service.hash_password("mypassword")
        if auth_service.verify_password("mypassword", hashed):
            print("Password correct!")

        access_token = auth_service.create_access_token(user_id=42, email="a@b.c")

        payload = auth_service.decode_token(access_token)
        if payload and payload.get("type") == "access":
            print(f"User ID: {auth_service.user_id_from_payload(payload)}")
    """

    def __init__(self, settings: AuthSettings | None = None):
        """
        Initialize the auth service.

        Args:
            settings: Optional AuthSettings. If not provided, loads from environment.
        """
        self.settings = settings or get_auth_settings()
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str | None) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise (including accounts
            without a password)
        """
        if not hashed_password:
            return False
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except ValueError as e:
            logger.warning(f"Password verification failed: {e}")
            return False

    def create_access_token(
        self,
        user_id: int,
        email: str,
        extra_claims: dict[str, Any] | None = None
    ) -> str:
        """
        Create an access token.

        Args:
            user_id: User's integer ID (stored as a string in "sub")
            email: User's email
            extra_claims: Optional additional claims to include

        Returns:
            JWT access token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "email": email,
            "type": "access",
            "exp": now + timedelta(minutes=self.settings.access_token_expire_minutes),
            "iat": now,
        }
        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(
            payload,
            self.settings.secret_key,
            algorithm=self.settings.algorithm
        )

    def decode_token(self, token: str) -> dict[str, Any] | None:
        """
        Decode and validate a JWT token.

        Returns:
            Token payload dict if valid, None otherwise
        """
        try:
            return jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.algorithm]
            )
        except JWTError as e:
            logger.debug(f"Token decode failed: {e}")
            return None

    @staticmethod
    def user_id_from_payload(payload: dict[str, Any]) -> int | None:
        """Extract the integer user ID from an access token payload."""
        sub = payload.get("sub")
        try:
            return int(sub)
        except (TypeError, ValueError):
            return None


# Global service instance (lazy-loaded)
_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get or create the global auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
