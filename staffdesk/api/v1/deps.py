"""
FastAPI dependencies — auth guards and database session.

The principal is rebuilt on every request from the signed session token
plus a fresh read of the user row, so role changes and deletions apply
immediately rather than at the next login.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.core.config import settings
from staffdesk.core.exceptions import AuthenticationError, AuthzError
from staffdesk.core.security import decode_session_token
from staffdesk.db.session import async_session_factory
from staffdesk.models.session import UserSession
from staffdesk.models.user import ROLE_ADMIN, User

# auto_error=False so we can fall back to the cookie if the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

# Don't rewrite last_seen_at on every single request
_TOUCH_INTERVAL = timedelta(seconds=60)


@dataclass
class Principal:
    """Per-request view of who is calling."""

    user: User
    session_id: str

    @property
    def is_admin(self) -> bool:
        return self.user.role == ROLE_ADMIN


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def extract_token(header_token: str | None, cookie_token: str | None) -> str | None:
    """Header wins over cookie; cookie values look like ``Bearer <token>``."""
    if header_token:
        return header_token
    if cookie_token:
        if cookie_token.startswith("Bearer "):
            return cookie_token.split(" ", 1)[1]
        return cookie_token
    return None


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # HttpOnly cookie
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Resolve token -> live session -> current user row."""
    final_token = extract_token(token, access_token)
    if not final_token:
        raise AuthenticationError()

    payload = decode_session_token(final_token)
    if payload is None:
        raise AuthenticationError()

    result = await db.execute(
        select(UserSession).where(UserSession.id == payload["sid"])
    )
    session_row = result.scalar_one_or_none()
    if session_row is None or str(session_row.user_id) != payload["sub"]:
        raise AuthenticationError()

    now = datetime.now(timezone.utc)
    idle = now - _ensure_utc(session_row.last_seen_at)
    if idle > timedelta(minutes=settings.SESSION_IDLE_TIMEOUT_MINUTES):
        await db.execute(delete(UserSession).where(UserSession.id == session_row.id))
        await db.commit()
        raise AuthenticationError("Session expired")

    user_result = await db.execute(select(User).where(User.id == session_row.user_id))
    user = user_result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError()

    if idle > _TOUCH_INTERVAL:
        session_row.last_seen_at = now
        await db.commit()

    return Principal(user=user, session_id=session_row.id)


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Only allow admin role to proceed."""
    if not principal.is_admin:
        raise AuthzError("Access denied. Admin privileges required.")
    return principal


async def require_employee(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Self-service pages belong to employees, not admins."""
    if principal.is_admin:
        raise AuthzError("Employee account required")
    return principal
