"""
Startup bootstrap: make sure a superadmin account exists.

Driven by BOOTSTRAP_SUPERADMIN_EMAIL / BOOTSTRAP_SUPERADMIN_PASSWORD. With
either unset nothing happens. An existing account with that email is promoted
to superadmin; its password is left alone.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docextract.core.config import Settings
from docextract.models.extractions import User

logger = logging.getLogger(__name__)


async def ensure_superadmin(db: AsyncSession, settings: Settings) -> User | None:
    email    = settings.bootstrap_superadmin_email.strip().lower()
    password = settings.bootstrap_superadmin_password
    if not email or not password:
        return None

    user = await db.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(email=email, role="superadmin")
        user.set_password(password)
        db.add(user)
        await db.flush()
        logger.info("Superadmin created | id=%s email=%s", user.id, email)
    elif user.role != "superadmin":
        user.role = "superadmin"
        logger.info("Superadmin promoted | id=%s email=%s", user.id, email)
    return user
