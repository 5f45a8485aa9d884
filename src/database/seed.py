"""
Mantrify - Startup Database Checks

Creates the schema and makes sure the configured admin account exists.

Usage:
    python -m src.database.seed
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select

from src.config.settings import get_app_settings
from src.database.models import User
from src.database.session import get_db_session, init_db
from src.services.auth_service import get_auth_service

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_PASSWORD = "test"


async def ensure_admin_user(email: Optional[str] = None) -> Optional[User]:
    """
    Make sure the admin account exists and has admin privileges.

    An existing user with the admin email is promoted; otherwise a verified
    admin is created with the default password. Idempotent.

    Args:
        email: Admin email. Defaults to AppSettings.admin_email.

    Returns:
        The admin user, or None when no admin email is configured
    """
    admin_email = email or get_app_settings().admin_email
    if not admin_email:
        logger.warning("⚠️ ADMIN_EMAIL not set. Skipping admin user creation.")
        return None

    normalized = admin_email.strip().lower()
    logger.info(f"Checking for admin user: {normalized}")

    async with get_db_session() as session:
        result = await session.execute(select(User).where(User.email == normalized))
        user = result.scalar_one_or_none()

        if user is not None:
            if not user.is_admin:
                user.is_admin = True
                logger.info(f"👑 Updated existing user to admin: {normalized}")
            else:
                logger.info(f"Admin user already exists: {normalized}")
            return user

        user = User(
            email=normalized,
            password=get_auth_service().hash_password(DEFAULT_ADMIN_PASSWORD),
            is_admin=True,
            is_email_verified=True,
            email_verified_at=datetime.now(timezone.utc),
        )
        session.add(user)
        await session.flush()

    logger.info(f"✅ Admin user created: {normalized}")
    logger.warning(f"⚠️ Default admin password is \"{DEFAULT_ADMIN_PASSWORD}\" - change it after first login")
    return user


async def run_startup_checks() -> None:
    """Create tables and the admin account. Raises if the database is unusable."""
    logger.info("Running startup checks...")
    try:
        await init_db()
        logger.info("Database schema synchronized successfully")
        await ensure_admin_user()
    except Exception as e:
        logger.error(f"❌ Startup checks failed: {e}")
        raise
    logger.info("✅ All startup checks completed successfully")


if __name__ == "__main__":
    from src.config.logging_config import configure_logging

    configure_logging()
    asyncio.run(run_startup_checks())
