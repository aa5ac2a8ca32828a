"""
Employee self-service endpoints — attendance, leave and profile.

Admins are refused here; they manage everything through ``/admin``.
"""

from __future__ import annotations

import logging

from fastapi import (APIRouter, BackgroundTasks, Depends, File, Form,
                     UploadFile)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.api.v1.deps import Principal, get_db, require_employee
from staffdesk.core.config import settings
from staffdesk.core.exceptions import StoreError, ValidationError
from staffdesk.core.security import get_password_hash, verify_password
from staffdesk.models.attendance import Attendance
from staffdesk.models.leave import LeaveApplication
from staffdesk.schemas.attendance import AttendanceRead, MarkAttendanceResponse
from staffdesk.schemas.leave import LeaveApplicationCreate, LeaveApplicationRead
from staffdesk.schemas.user import (AttendancePageResponse, EmployeeRead,
                                    LeaveListResponse, PrincipalRead,
                                    ProfileResponse, UserDashboardResponse)
from staffdesk.services.assets import AssetManager, get_asset_manager
from staffdesk.services.attendance import mark_attendance, today_utc
from staffdesk.services.employees import (attendance_summary, clean,
                                          leave_summary, settle_image_change,
                                          stage_profile_image)

router = APIRouter(prefix="/user", tags=["user"])
logger = logging.getLogger(__name__)


async def _recent_attendance(db: AsyncSession, user_id: int, limit: int) -> list[AttendanceRead]:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.user_id == user_id)
        .order_by(Attendance.date.desc())
        .limit(limit)
    )
    return [AttendanceRead.model_validate(a) for a in result.scalars().all()]


async def _leave_applications(
    db: AsyncSession, user_id: int, limit: int | None = None
) -> list[LeaveApplicationRead]:
    query = (
        select(LeaveApplication)
        .where(LeaveApplication.user_id == user_id)
        .order_by(LeaveApplication.created_at.desc(), LeaveApplication.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return [LeaveApplicationRead.model_validate(la) for la in result.scalars().all()]


@router.get("/dashboard", response_model=UserDashboardResponse)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_employee),
) -> UserDashboardResponse:
    user_id = principal.user.id
    return UserDashboardResponse(
        user=PrincipalRead.model_validate(principal.user),
        attendance=await _recent_attendance(db, user_id, 5),
        leaves=await _leave_applications(db, user_id, 5),
    )


# ── Attendance ──────────────────────────────────────────────────────
@router.get("/attendance", response_model=AttendancePageResponse)
async def attendance_page(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_employee),
) -> AttendancePageResponse:
    today = today_utc()
    user_id = principal.user.id
    result = await db.execute(
        select(Attendance).where(Attendance.user_id == user_id, Attendance.date == today)
    )
    today_row = result.scalar_one_or_none()
    return AttendancePageResponse(
        user=PrincipalRead.model_validate(principal.user),
        today=today,
        today_attendance=AttendanceRead.model_validate(today_row) if today_row else None,
        attendance=await _recent_attendance(db, user_id, 10),
    )


@router.post("/attendance", response_model=MarkAttendanceResponse)
async def mark_today(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_employee),
) -> MarkAttendanceResponse:
    """Mark today as present; marking again just overwrites today's row."""
    user_id = principal.user.id
    try:
        row = await mark_attendance(db, user_id, today_utc())
    except (SQLAlchemyError, StoreError) as e:
        await db.rollback()
        logger.error("Error marking attendance for user %d: %s", user_id, e)
        return MarkAttendanceResponse(success=False, message="Could not mark attendance")

    logger.info("Attendance marked for user %d on %s", user_id, row.date)
    return MarkAttendanceResponse(
        success=True,
        message="Attendance marked",
        attendance=AttendanceRead.model_validate(row),
    )


# ── Leave ───────────────────────────────────────────────────────────
@router.get("/leave-applications", response_model=LeaveListResponse)
async def list_leave_applications(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_employee),
) -> LeaveListResponse:
    return LeaveListResponse(
        user=PrincipalRead.model_validate(principal.user),
        applications=await _leave_applications(db, principal.user.id),
    )


@router.post("/leave-applications", response_model=LeaveApplicationRead, status_code=201)
async def apply_for_leave(
    body: LeaveApplicationCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_employee),
) -> LeaveApplication:
    application = LeaveApplication(
        user_id=principal.user.id,
        start_date=body.start_date,
        end_date=body.end_date,
        reason=body.reason,
    )
    db.add(application)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError() from e

    await db.refresh(application)
    logger.info(
        "Leave requested by user %d: %s to %s",
        principal.user.id, body.start_date, body.end_date,
    )
    return application


# ── Profile ─────────────────────────────────────────────────────────
@router.get("/profile", response_model=ProfileResponse)
async def view_profile(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_employee),
) -> ProfileResponse:
    user = principal.user
    return ProfileResponse(
        user=PrincipalRead.model_validate(user),
        profile=EmployeeRead.model_validate(user),
        attendance_summary=await attendance_summary(db, user.id),
        leave_summary=await leave_summary(db, user.id),
    )


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    background_tasks: BackgroundTasks,
    name: str = Form(""),
    email: str | None = Form(None),
    current_password: str | None = Form(None),
    new_password: str | None = Form(None),
    confirm_password: str | None = Form(None),
    remove_image: bool = Form(False),
    profile_image: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    assets: AssetManager = Depends(get_asset_manager),
    principal: Principal = Depends(require_employee),
) -> ProfileResponse:
    """Update own name, email, image and (optionally) password."""
    user = principal.user
    name = name.strip()
    if not name:
        raise ValidationError("Name is required")

    wants_new_password = bool(new_password and new_password.strip())
    if wants_new_password:
        if not current_password or not verify_password(current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")
        if new_password != confirm_password:
            raise ValidationError("New passwords do not match")
        if len(new_password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {settings.MIN_PASSWORD_LENGTH} characters long"
            )

    change = await stage_profile_image(assets, user.profile_image, profile_image, remove_image)

    user.name = name
    user.email = clean(email)
    user.profile_image = change.reference
    if wants_new_password:
        user.hashed_password = get_password_hash(new_password)

    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        settle_image_change(background_tasks, assets, change, committed=False)
        raise StoreError() from e

    settle_image_change(background_tasks, assets, change, committed=True)
    await db.refresh(user)
    logger.info("User %d updated their profile", user.id)
    return ProfileResponse(
        user=PrincipalRead.model_validate(user),
        profile=EmployeeRead.model_validate(user),
        attendance_summary=await attendance_summary(db, user.id),
        leave_summary=await leave_summary(db, user.id),
    )
