"""Pydantic schemas for login sessions."""

from __future__ import annotations

from pydantic import BaseModel

from staffdesk.schemas.user import PrincipalRead


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: PrincipalRead
