"""
Session token creation / verification and password hashing (bcrypt).
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from staffdesk.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


def dummy_verify() -> None:
    """Burn the same time as a real check so unknown usernames don't stand out."""
    pwd_context.dummy_verify()


# ── Session tokens ──────────────────────────────────────────────────
def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def create_session_token(
    user_id: int,
    session_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.SESSION_MAX_AGE_HOURS)
    )
    return jwt.encode(
        {"exp": expire, "sub": str(user_id), "sid": session_id, "type": "session"},
        _SECRET,
        algorithm=_ALGORITHM,
    )


def decode_session_token(token: str) -> dict | None:
    """Return payload dict if the *session* token is valid, else ``None``."""
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
        if payload.get("type") != "session":
            return None
        if not payload.get("sub") or not payload.get("sid"):
            return None
        return payload
    except JWTError:
        return None
