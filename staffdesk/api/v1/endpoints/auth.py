"""
Auth endpoints — login (OAuth2 password form), logout & current principal.
"""

# No `from __future__ import annotations` here: slowapi wraps the login
# handler and FastAPI resolves its annotations against the wrapper's globals.

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffdesk.api.v1.deps import (Principal, extract_token, get_current_principal,
                                   get_db, oauth2_scheme)
from staffdesk.core.config import settings
from staffdesk.core.exceptions import AuthenticationError
from staffdesk.core.security import (create_session_token, decode_session_token,
                                     dummy_verify, new_session_id, verify_password)
from staffdesk.models.session import UserSession
from staffdesk.models.user import User
from staffdesk.schemas.common import LogoutResponse
from staffdesk.schemas.token import LoginResponse
from staffdesk.schemas.user import PrincipalRead

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

_COOKIE_NAME = "access_token"


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Authenticate with username/password. Sets an HttpOnly session cookie."""
    result = await db.execute(
        select(User).where(User.username == form_data.username.strip())
    )
    user = result.scalar_one_or_none()

    if user is None:
        dummy_verify()
        raise AuthenticationError("Invalid username or password")
    if not verify_password(form_data.password, user.hashed_password):
        raise AuthenticationError("Invalid username or password")

    # Sessions this user abandoned without logging out
    now = datetime.now(timezone.utc)
    idle_cutoff = now - timedelta(minutes=settings.SESSION_IDLE_TIMEOUT_MINUTES)
    age_cutoff = now - timedelta(hours=settings.SESSION_MAX_AGE_HOURS)
    await db.execute(
        delete(UserSession).where(
            UserSession.user_id == user.id,
            or_(UserSession.last_seen_at < idle_cutoff, UserSession.created_at < age_cutoff),
        )
    )

    session_row = UserSession(id=new_session_id(), user_id=user.id)
    db.add(session_row)
    await db.commit()

    token = create_session_token(user.id, session_row.id)
    response.set_cookie(
        key=_COOKIE_NAME,
        value=f"Bearer {token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,  # Set to True in HTTPS production
        samesite="lax",
        max_age=settings.SESSION_MAX_AGE_HOURS * 60 * 60,
    )
    logger.info("User %s logged in (role %s)", user.username, user.role)

    return LoginResponse(
        access_token=token,
        user=PrincipalRead.model_validate(user),
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> LogoutResponse:
    """End the session. Calling it without a live session is fine."""
    final_token = extract_token(token, access_token)
    payload = decode_session_token(final_token) if final_token else None
    if payload is not None:
        await db.execute(delete(UserSession).where(UserSession.id == payload["sid"]))
        await db.commit()
        logger.info("Session ended for user %s", payload["sub"])

    response.delete_cookie(_COOKIE_NAME)
    return LogoutResponse(message="Logged out")


@router.get("/me", response_model=PrincipalRead)
async def read_current_user(
    principal: Principal = Depends(get_current_principal),
) -> User:
    """Return the currently authenticated user."""
    return principal.user
