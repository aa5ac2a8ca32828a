"""
First-boot bootstrap: create the schema and the default admin account.

Safe to run on every start; the admin is only inserted when no row with
that username exists.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from staffdesk.core.config import settings
from staffdesk.core.security import get_password_hash
from staffdesk.db.base import Base

# Ensure all models are imported so metadata.create_all can see them
from staffdesk.models.attendance import Attendance  # noqa: F401
from staffdesk.models.leave import LeaveApplication  # noqa: F401
from staffdesk.models.session import UserSession  # noqa: F401
from staffdesk.models.user import ROLE_ADMIN, User

logger = logging.getLogger(__name__)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def ensure_default_admin(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    """Insert the default admin if missing. Returns True when a row was added."""
    async with session_factory() as session:
        result = await session.execute(
            select(User).where(User.username == settings.FIRST_ADMIN_USERNAME)
        )
        if result.scalar_one_or_none() is not None:
            return False

        session.add(
            User(
                username=settings.FIRST_ADMIN_USERNAME,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                name=settings.FIRST_ADMIN_NAME,
                email=settings.FIRST_ADMIN_EMAIL,
                department=settings.FIRST_ADMIN_DEPARTMENT,
                role=ROLE_ADMIN,
            )
        )
        try:
            await session.commit()
        except IntegrityError:
            # Another worker got there first
            await session.rollback()
            return False

    logger.info(
        "Default admin created: %s (password: <redacted>)",
        settings.FIRST_ADMIN_USERNAME,
    )
    return True


async def init_db(engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]) -> None:
    await create_tables(engine)
    await ensure_default_admin(session_factory)
