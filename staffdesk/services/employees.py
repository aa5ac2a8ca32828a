"""
Employee record helpers shared by the admin and self-service endpoints.

Deleting employees runs as one transaction: attendance, leave applications,
sessions and the user rows go together or not at all.  Profile images are
only removed after that commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import BackgroundTasks, UploadFile
from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.core.exceptions import StoreError
from staffdesk.models.attendance import STATUS_ABSENT, STATUS_PRESENT, Attendance
from staffdesk.models.leave import (LEAVE_APPROVED, LEAVE_PENDING,
                                    LEAVE_REJECTED, LeaveApplication)
from staffdesk.models.session import UserSession
from staffdesk.models.user import ROLE_USER, User
from staffdesk.schemas.attendance import AttendanceSummary
from staffdesk.schemas.leave import LeaveSummary
from staffdesk.services.assets import AssetManager

logger = logging.getLogger(__name__)


def clean(value: str | None) -> str | None:
    """Strip a form value; blank means absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None


async def get_employee(db: AsyncSession, employee_id: int) -> User | None:
    result = await db.execute(
        select(User).where(User.id == employee_id, User.role == ROLE_USER)
    )
    return result.scalar_one_or_none()


async def username_taken(db: AsyncSession, username: str, exclude_id: int | None = None) -> bool:
    query = select(User.id).where(User.username == username)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


# ── Profile images ──────────────────────────────────────────────────
@dataclass
class ImageChange:
    reference: str | None  # value to write to users.profile_image
    stored: str | None = None  # newly written file, discard if the row fails
    stale: str | None = None  # previous file, remove once the row commits


async def stage_profile_image(
    assets: AssetManager,
    current: str | None,
    upload: UploadFile | None,
    remove_image: bool,
) -> ImageChange:
    """Work out the new profile image reference; writes any new file to disk."""
    if remove_image:
        return ImageChange(reference=None, stale=current)
    data = await assets.read_upload(upload)
    if data is None:
        return ImageChange(reference=current)
    new_reference = await assets.replace(current, data, upload.content_type)
    return ImageChange(reference=new_reference, stored=new_reference, stale=current)


def settle_image_change(
    background_tasks: BackgroundTasks,
    assets: AssetManager,
    change: ImageChange,
    committed: bool,
) -> None:
    """Queue removal of whichever file is no longer referenced."""
    orphan = change.stale if committed else change.stored
    if orphan:
        background_tasks.add_task(assets.remove, orphan)


# ── Cascade delete ─────────────────────────────────────────────────
async def delete_employees(db: AsyncSession, employee_ids: list[int]) -> list[User]:
    """Delete employees and everything they own in a single transaction.

    Ids that don't name a ``user``-role row are ignored.  Returns the
    deleted users so the caller can clean up their images.
    """
    try:
        result = await db.execute(
            select(User).where(User.id.in_(employee_ids), User.role == ROLE_USER)
        )
        employees = list(result.scalars().all())
        ids = [e.id for e in employees]
        if not ids:
            return []

        await db.execute(delete(Attendance).where(Attendance.user_id.in_(ids)))
        await db.execute(delete(LeaveApplication).where(LeaveApplication.user_id.in_(ids)))
        await db.execute(delete(UserSession).where(UserSession.user_id.in_(ids)))
        await db.execute(
            delete(User).where(User.id.in_(ids), User.role == ROLE_USER)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError() from e

    logger.info("Deleted %d employee(s): %s", len(ids), ids)
    return employees


# ── Summaries ──────────────────────────────────────────────────────
async def attendance_summary(db: AsyncSession, user_id: int) -> AttendanceSummary:
    result = await db.execute(
        select(
            func.count(Attendance.id),
            func.sum(case((Attendance.status == STATUS_PRESENT, 1), else_=0)),
            func.sum(case((Attendance.status == STATUS_ABSENT, 1), else_=0)),
        ).where(Attendance.user_id == user_id)
    )
    total, present, absent = result.one()
    return AttendanceSummary(
        total_days=total or 0,
        present_days=present or 0,
        absent_days=absent or 0,
    )


async def leave_summary(db: AsyncSession, user_id: int) -> LeaveSummary:
    result = await db.execute(
        select(
            func.count(LeaveApplication.id),
            func.sum(case((LeaveApplication.status == LEAVE_APPROVED, 1), else_=0)),
            func.sum(case((LeaveApplication.status == LEAVE_PENDING, 1), else_=0)),
            func.sum(case((LeaveApplication.status == LEAVE_REJECTED, 1), else_=0)),
        ).where(LeaveApplication.user_id == user_id)
    )
    total, approved, pending, rejected = result.one()
    return LeaveSummary(
        total_applications=total or 0,
        approved_leaves=approved or 0,
        pending_leaves=pending or 0,
        rejected_leaves=rejected or 0,
    )
