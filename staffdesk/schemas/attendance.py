"""Pydantic schemas for attendance views."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class AttendanceRead(BaseModel):
    id: int
    user_id: int
    date: date
    status: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class AttendanceSummary(BaseModel):
    total_days: int = 0
    present_days: int = 0
    absent_days: int = 0


class MarkAttendanceResponse(BaseModel):
    success: bool
    message: str
    attendance: AttendanceRead | None = None
