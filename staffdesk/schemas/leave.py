"""Pydantic schemas for leave applications."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, field_validator, model_validator


class LeaveApplicationCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reason must not be empty")
        return v

    @model_validator(mode="after")
    def _date_order(self) -> "LeaveApplicationCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


class LeaveApplicationRead(BaseModel):
    id: int
    user_id: int
    start_date: date
    end_date: date
    reason: str
    status: str
    admin_comment: str | None
    created_at: datetime | None
    employee_name: str | None = None  # joined from users table

    model_config = {"from_attributes": True}


class LeaveSummary(BaseModel):
    total_applications: int = 0
    approved_leaves: int = 0
    pending_leaves: int = 0
    rejected_leaves: int = 0


class LeaveDecisionRequest(BaseModel):
    action: Literal["approved", "rejected"]
    comment: str | None = None

    @field_validator("comment")
    @classmethod
    def _comment(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class LeaveDecisionResponse(BaseModel):
    success: bool
    message: str
    application: LeaveApplicationRead | None = None
