"""
Populate the database with demo employees, attendance and a leave request.

Usage::

    staffdesk-seed
    python -m staffdesk.db.seed

Existing usernames are skipped, so running it twice is harmless.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staffdesk.core.config import settings
from staffdesk.core.security import get_password_hash
from staffdesk.db.init_db import init_db
from staffdesk.db.session import async_session_factory, engine
from staffdesk.models.attendance import STATUS_PRESENT, Attendance
from staffdesk.models.leave import LeaveApplication
from staffdesk.models.user import ROLE_USER, User
from staffdesk.services.attendance import today_utc

logger = logging.getLogger(__name__)

SAMPLE_PASSWORD = "password123"

SAMPLE_EMPLOYEES = [
    {
        "username": "john.doe",
        "name": "John Doe",
        "email": "john.doe@company.com",
        "department": "Engineering",
    },
    {
        "username": "jane.smith",
        "name": "Jane Smith",
        "email": "jane.smith@company.com",
        "department": "HR",
    },
    {
        "username": "mike.johnson",
        "name": "Mike Johnson",
        "email": "mike.johnson@company.com",
        "department": "Marketing",
    },
]


async def seed(session_factory: async_sessionmaker[AsyncSession]) -> list[str]:
    """Insert the sample data; returns the usernames actually added."""
    added: list[str] = []
    today = today_utc()

    async with session_factory() as session:
        for index, sample in enumerate(SAMPLE_EMPLOYEES):
            existing = await session.execute(
                select(User.id).where(User.username == sample["username"])
            )
            if existing.first() is not None:
                logger.info("Skipping %s: already exists", sample["username"])
                continue

            employee = User(
                **sample,
                hashed_password=get_password_hash(SAMPLE_PASSWORD),
                role=ROLE_USER,
            )
            session.add(employee)
            await session.flush()

            # Last five days of attendance
            for offset in range(5):
                session.add(
                    Attendance(
                        user_id=employee.id,
                        date=today - timedelta(days=offset),
                        status=STATUS_PRESENT,
                    )
                )

            if index == 0:
                session.add(
                    LeaveApplication(
                        user_id=employee.id,
                        start_date=today + timedelta(days=7),
                        end_date=today + timedelta(days=9),
                        reason="Personal work",
                    )
                )

            await session.commit()
            added.append(employee.username)
            logger.info("Added employee %s", employee.name)

    return added


async def _run() -> None:
    await init_db(engine, async_session_factory)
    added = await seed(async_session_factory)
    await engine.dispose()

    logger.info("Database seeding completed (%d employee(s) added)", len(added))
    logger.info("Sample logins: %s", ", ".join(s["username"] for s in SAMPLE_EMPLOYEES))


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    asyncio.run(_run())


if __name__ == "__main__":
    main()
