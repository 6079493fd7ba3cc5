"""
Session handling for the membership service.

Registration and login live in the external auth subsystem, which issues
HS256 JWTs (``sub`` = user id, ``role`` = global role, ``jti``) either in the
session cookie or as a Bearer token. This module only:

- decodes and verifies those tokens
- keeps a Redis revocation list keyed by ``jti``
- resolves the caller into a ``SessionUser`` on every request

The global role is re-read from the database on each request so a stale
token never carries a role the user no longer holds.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import DomainError, ErrorCode
from app.core.redis import get_redis, revoked_session_key
from app.models.user import User
from supplyhub_shared.schemas.roles import UserRole

log = structlog.get_logger()
settings = get_settings()


@dataclass(frozen=True)
class SessionUser:
    user_id: uuid.UUID
    global_role: UserRole
    jti: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.global_role == UserRole.ADMIN


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_session_token(
    user_id: uuid.UUID,
    role: UserRole | str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session token. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_session_token(token: str) -> dict:
    """Decode and verify a session token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_session(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a token id to the revocation list until it would have expired anyway."""
    redis = await get_redis()
    await redis.setex(revoked_session_key(jti), max(ttl_seconds, 1), "1")


async def is_session_revoked(jti: str) -> bool:
    redis = await get_redis()
    return await redis.exists(revoked_session_key(jti)) > 0


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def _extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(settings.session_cookie_name)


async def current_session(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Optional[SessionUser]:
    """Resolve the caller, or ``None`` when there is no usable session."""
    token = _extract_token(request)
    if not token:
        return None

    try:
        payload = decode_session_token(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        log.info("auth.invalid_token")
        return None

    jti = payload.get("jti")
    if jti and await is_session_revoked(jti):
        log.info("auth.revoked_token", jti=jti)
        return None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        log.info("auth.inactive_user", user_id=str(user_id))
        return None

    exp = payload.get("exp")
    return SessionUser(
        user_id=user.id,
        global_role=UserRole(user.role),
        jti=jti,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )


async def require_session(
    session_user: Optional[SessionUser] = Depends(current_session),
) -> SessionUser:
    if session_user is None:
        raise DomainError(ErrorCode.UNAUTHENTICATED)
    return session_user


async def require_platform_admin(
    session_user: SessionUser = Depends(require_session),
) -> SessionUser:
    if not session_user.is_admin:
        raise DomainError(ErrorCode.FORBIDDEN, "Platform administrator access required")
    return session_user
