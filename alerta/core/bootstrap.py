"""Application bootstrap helpers ensuring the database is ready."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from alerta.core.auth import get_password_hash
from alerta.core.db import async_session, init_models
from alerta.core.settings import get_settings
from alerta.domain.models import SETTINGS_ROW_ID, AppSettings, Profile, Role

logger = logging.getLogger(__name__)

_bootstrap_lock = asyncio.Lock()
_bootstrap_complete = False


async def ensure_database_ready() -> None:
    """Create the schema and the rows every installation needs."""

    global _bootstrap_complete
    if _bootstrap_complete:
        return

    async with _bootstrap_lock:
        if _bootstrap_complete:
            return

        logger.info("Creating database schema")
        await init_models()
        await _seed_defaults()

        _bootstrap_complete = True
        logger.info("Database ready")


async def _seed_defaults() -> None:
    try:
        async with async_session() as session:
            created = False
            created |= await _seed_settings(session)
            created |= await _seed_admin(session)
            if created:
                await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to seed default data")
        raise


async def _seed_settings(session: AsyncSession) -> bool:
    if await session.get(AppSettings, SETTINGS_ROW_ID) is not None:
        return False
    session.add(AppSettings(id=SETTINGS_ROW_ID))
    logger.info("Seeded default application settings")
    return True


async def _seed_admin(session: AsyncSession) -> bool:
    settings = get_settings()
    email = settings.bootstrap_admin_email
    password = settings.bootstrap_admin_password
    if not email or not password:
        return False

    existing = await session.scalar(select(Profile.id).where(Profile.email == email))
    if existing is not None:
        return False

    session.add(
        Profile(
            name="Administrador",
            email=email,
            role=Role.ADMIN,
            password_hash=get_password_hash(password),
        )
    )
    logger.info("Seeded bootstrap admin %s", email)
    return True


__all__ = ["ensure_database_ready"]
