"""Pydantic schemas for users, employees and profile views."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from staffdesk.schemas.attendance import AttendanceRead, AttendanceSummary
from staffdesk.schemas.leave import LeaveApplicationRead, LeaveSummary


class PrincipalRead(BaseModel):
    """The signed-in user as every view sees it."""

    id: int
    username: str
    name: str
    role: str

    model_config = {"from_attributes": True}


class EmployeeRead(BaseModel):
    id: int
    username: str
    name: str
    email: str | None
    department: str | None
    profile_image: str | None
    role: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class EmployeeListResponse(BaseModel):
    user: PrincipalRead
    employees: list[EmployeeRead]


class EmployeeDetailResponse(BaseModel):
    user: PrincipalRead
    employee: EmployeeRead
    attendance_summary: AttendanceSummary
    recent_attendance: list[AttendanceRead]
    leave_applications: list[LeaveApplicationRead]


class BulkDeleteRequest(BaseModel):
    employee_ids: list[int] = Field(default_factory=list)


class BulkDeleteResponse(BaseModel):
    success: bool
    deleted: int
    message: str


class ProfileResponse(BaseModel):
    user: PrincipalRead
    profile: EmployeeRead
    attendance_summary: AttendanceSummary
    leave_summary: LeaveSummary


class DashboardStats(BaseModel):
    total_employees: int
    pending_leaves: int
    today_attendance: int


class AdminDashboardResponse(BaseModel):
    user: PrincipalRead
    stats: DashboardStats


class UserDashboardResponse(BaseModel):
    user: PrincipalRead
    attendance: list[AttendanceRead]
    leaves: list[LeaveApplicationRead]


class AttendancePageResponse(BaseModel):
    user: PrincipalRead
    today: date
    today_attendance: AttendanceRead | None
    attendance: list[AttendanceRead]


class LeaveListResponse(BaseModel):
    user: PrincipalRead
    applications: list[LeaveApplicationRead]
