"""
Daily attendance marking.

One row per (user, date); marking the same day again overwrites the row.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.core.exceptions import StoreError
from staffdesk.models.attendance import STATUS_PRESENT, Attendance

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


async def mark_attendance(
    db: AsyncSession,
    user_id: int,
    day: date,
    status: str = STATUS_PRESENT,
) -> Attendance:
    """Upsert the (user, day) row and return it."""
    dialect = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        logger.error("Attendance upsert not supported on %s", dialect)
        raise StoreError()
    stmt = insert(Attendance).values(
        user_id=user_id,
        date=day,
        status=status,
        created_at=datetime.now(timezone.utc),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "date"],
        set_={"status": stmt.excluded.status, "created_at": stmt.excluded.created_at},
    )
    await db.execute(stmt)
    await db.commit()

    result = await db.execute(
        select(Attendance)
        .where(Attendance.user_id == user_id, Attendance.date == day)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
