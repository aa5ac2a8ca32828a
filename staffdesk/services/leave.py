"""
Leave application decisions.

The update is conditional on ``status = 'pending'`` so a decided
application can never be flipped, even by two admins racing each other.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.core.exceptions import ConflictError, NotFoundError
from staffdesk.models.leave import LEAVE_DECISIONS, LEAVE_PENDING, LeaveApplication

logger = logging.getLogger(__name__)


async def decide_leave(
    db: AsyncSession,
    application_id: int,
    action: str,
    comment: str | None,
) -> LeaveApplication:
    if action not in LEAVE_DECISIONS:
        raise ValueError(f"Unknown leave decision: {action}")

    result = await db.execute(
        update(LeaveApplication)
        .where(
            LeaveApplication.id == application_id,
            LeaveApplication.status == LEAVE_PENDING,
        )
        .values(status=action, admin_comment=comment)
        .execution_options(synchronize_session=False)
    )
    changed = result.rowcount
    await db.commit()

    current = await db.execute(
        select(LeaveApplication)
        .where(LeaveApplication.id == application_id)
        .execution_options(populate_existing=True)
    )
    application = current.scalar_one_or_none()
    if application is None:
        raise NotFoundError("Leave application not found")
    if changed == 0:
        raise ConflictError(f"Leave application already {application.status}")

    logger.info("Leave application %d %s", application_id, action)
    return application
