"""
Admin endpoints — employee management and leave decisions.

Every route here requires the admin role.  Employee routes only ever
touch ``user``-role rows; the admin account is invisible to them.
"""

from __future__ import annotations

import logging

from fastapi import (APIRouter, BackgroundTasks, Depends, File, Form, Query,
                     UploadFile)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.api.v1.deps import Principal, get_db, require_admin
from staffdesk.core.exceptions import (ConflictError, NotFoundError,
                                       StoreError, ValidationError)
from staffdesk.core.security import get_password_hash
from staffdesk.models.attendance import Attendance
from staffdesk.models.leave import LEAVE_PENDING, LeaveApplication
from staffdesk.models.user import ROLE_USER, User
from staffdesk.schemas.attendance import AttendanceRead
from staffdesk.schemas.common import DeleteResponse
from staffdesk.schemas.leave import (LeaveApplicationRead,
                                     LeaveDecisionRequest,
                                     LeaveDecisionResponse)
from staffdesk.schemas.user import (AdminDashboardResponse, BulkDeleteRequest,
                                    BulkDeleteResponse, DashboardStats,
                                    EmployeeDetailResponse,
                                    EmployeeListResponse, EmployeeRead,
                                    LeaveListResponse, PrincipalRead)
from staffdesk.services.assets import AssetManager, get_asset_manager
from staffdesk.services.attendance import today_utc
from staffdesk.services.employees import (attendance_summary, clean,
                                          delete_employees, get_employee,
                                          settle_image_change,
                                          stage_profile_image, username_taken)
from staffdesk.services.leave import decide_leave

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


# ── Dashboard ───────────────────────────────────────────────────────
@router.get("/dashboard", response_model=AdminDashboardResponse)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> AdminDashboardResponse:
    total_employees = await db.scalar(
        select(func.count(User.id)).where(User.role == ROLE_USER)
    )
    pending_leaves = await db.scalar(
        select(func.count(LeaveApplication.id)).where(LeaveApplication.status == LEAVE_PENDING)
    )
    today_attendance = await db.scalar(
        select(func.count(Attendance.id)).where(Attendance.date == today_utc())
    )
    return AdminDashboardResponse(
        user=PrincipalRead.model_validate(admin.user),
        stats=DashboardStats(
            total_employees=total_employees or 0,
            pending_leaves=pending_leaves or 0,
            today_attendance=today_attendance or 0,
        ),
    )


# ── Employee CRUD ───────────────────────────────────────────────────
@router.get("/employees", response_model=EmployeeListResponse)
async def list_employees(
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> EmployeeListResponse:
    query = select(User).where(User.role == ROLE_USER).order_by(User.name)
    if search:
        # Escape SQL LIKE metacharacters to prevent wildcard injection
        safe_search = search.replace("%", r"\%").replace("_", r"\_")
        query = query.where(User.name.ilike(f"%{safe_search}%", escape="\\"))
    result = await db.execute(query)
    return EmployeeListResponse(
        user=PrincipalRead.model_validate(admin.user),
        employees=[EmployeeRead.model_validate(e) for e in result.scalars().all()],
    )


@router.post("/employees", response_model=EmployeeRead, status_code=201)
async def create_employee(
    background_tasks: BackgroundTasks,
    username: str = Form(""),
    password: str = Form(""),
    name: str = Form(""),
    email: str | None = Form(None),
    department: str | None = Form(None),
    profile_image: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    assets: AssetManager = Depends(get_asset_manager),
    _admin: Principal = Depends(require_admin),
) -> User:
    """Create a ``user``-role account with an optional profile image."""
    username = username.strip()
    name = name.strip()
    if not username or not password or not name:
        raise ValidationError("Username, password, and name are required")
    if await username_taken(db, username):
        raise ConflictError("Username already exists")

    stored = await assets.store_upload(profile_image)
    employee = User(
        username=username,
        hashed_password=get_password_hash(password),
        name=name,
        email=clean(email),
        department=clean(department),
        profile_image=stored,
        role=ROLE_USER,
    )
    db.add(employee)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if stored:
            background_tasks.add_task(assets.remove, stored)
        raise ConflictError("Username already exists") from e
    except SQLAlchemyError as e:
        await db.rollback()
        if stored:
            background_tasks.add_task(assets.remove, stored)
        raise StoreError() from e

    await db.refresh(employee)
    logger.info("Created employee %s (id %d)", employee.username, employee.id)
    return employee


@router.get("/employees/{employee_id}", response_model=EmployeeDetailResponse)
async def view_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> EmployeeDetailResponse:
    employee = await get_employee(db, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")

    recent = await db.execute(
        select(Attendance)
        .where(Attendance.user_id == employee_id)
        .order_by(Attendance.date.desc())
        .limit(10)
    )
    leaves = await db.execute(
        select(LeaveApplication)
        .where(LeaveApplication.user_id == employee_id)
        .order_by(LeaveApplication.created_at.desc(), LeaveApplication.id.desc())
    )
    return EmployeeDetailResponse(
        user=PrincipalRead.model_validate(admin.user),
        employee=EmployeeRead.model_validate(employee),
        attendance_summary=await attendance_summary(db, employee_id),
        recent_attendance=[AttendanceRead.model_validate(a) for a in recent.scalars().all()],
        leave_applications=[
            LeaveApplicationRead.model_validate(la) for la in leaves.scalars().all()
        ],
    )


@router.put("/employees/{employee_id}", response_model=EmployeeRead)
async def update_employee(
    employee_id: int,
    background_tasks: BackgroundTasks,
    username: str = Form(""),
    name: str = Form(""),
    email: str | None = Form(None),
    department: str | None = Form(None),
    password: str | None = Form(None),
    remove_image: bool = Form(False),
    profile_image: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    assets: AssetManager = Depends(get_asset_manager),
    _admin: Principal = Depends(require_admin),
) -> User:
    """Edit an employee; a blank password leaves the current one in place."""
    employee = await get_employee(db, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")

    username = username.strip()
    name = name.strip()
    if not username or not name:
        raise ValidationError("Username and name are required")
    if await username_taken(db, username, exclude_id=employee.id):
        raise ConflictError("Username already exists")

    change = await stage_profile_image(assets, employee.profile_image, profile_image, remove_image)

    employee.username = username
    employee.name = name
    employee.email = clean(email)
    employee.department = clean(department)
    employee.profile_image = change.reference
    if password and password.strip():
        employee.hashed_password = get_password_hash(password)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        settle_image_change(background_tasks, assets, change, committed=False)
        raise ConflictError("Username already exists") from e
    except SQLAlchemyError as e:
        await db.rollback()
        settle_image_change(background_tasks, assets, change, committed=False)
        raise StoreError() from e

    settle_image_change(background_tasks, assets, change, committed=True)
    await db.refresh(employee)
    logger.info("Updated employee %d", employee_id)
    return employee


@router.delete("/employees/{employee_id}", response_model=DeleteResponse)
async def delete_employee(
    employee_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    assets: AssetManager = Depends(get_asset_manager),
    _admin: Principal = Depends(require_admin),
) -> DeleteResponse:
    """Delete an employee with their attendance, leave and profile image."""
    deleted = await delete_employees(db, [employee_id])
    if not deleted:
        raise NotFoundError("Employee not found")

    employee = deleted[0]
    background_tasks.add_task(assets.remove, employee.profile_image)
    return DeleteResponse(success=True, message=f"Employee '{employee.name}' deleted")


@router.post("/employees/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_employees(
    body: BulkDeleteRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    assets: AssetManager = Depends(get_asset_manager),
    _admin: Principal = Depends(require_admin),
) -> BulkDeleteResponse:
    if not body.employee_ids:
        raise ValidationError("Please select at least one employee to delete")

    deleted = await delete_employees(db, body.employee_ids)
    for employee in deleted:
        background_tasks.add_task(assets.remove, employee.profile_image)
    return BulkDeleteResponse(
        success=True,
        deleted=len(deleted),
        message=f"Deleted {len(deleted)} employee(s)",
    )


# ── Leave applications ──────────────────────────────────────────────
@router.get("/leave-applications", response_model=LeaveListResponse)
async def list_leave_applications(
    status: str | None = Query(default=None, pattern="^(pending|approved|rejected)$"),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> LeaveListResponse:
    query = (
        select(LeaveApplication, User.name)
        .join(User, LeaveApplication.user_id == User.id)
        .order_by(LeaveApplication.created_at.desc(), LeaveApplication.id.desc())
    )
    if status:
        query = query.where(LeaveApplication.status == status)
    result = await db.execute(query)

    applications = []
    for application, employee_name in result.all():
        item = LeaveApplicationRead.model_validate(application)
        item.employee_name = employee_name
        applications.append(item)
    return LeaveListResponse(
        user=PrincipalRead.model_validate(admin.user),
        applications=applications,
    )


@router.post(
    "/leave-applications/{application_id}/decision",
    response_model=LeaveDecisionResponse,
)
async def decide_leave_application(
    application_id: int,
    body: LeaveDecisionRequest,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> LeaveDecisionResponse:
    """Approve or reject a pending application."""
    try:
        application = await decide_leave(db, application_id, body.action, body.comment)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error deciding leave application %d: %s", application_id, e)
        return LeaveDecisionResponse(success=False, message="Could not record the decision")

    return LeaveDecisionResponse(
        success=True,
        message=f"Leave application {application.status}",
        application=LeaveApplicationRead.model_validate(application),
    )
