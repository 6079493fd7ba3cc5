"""
Session endpoints.

Login and registration belong to the auth subsystem; this router only reports
the current session and revokes it on logout.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Response

from app.core.auth import SessionUser, require_session, revoke_session
from app.core.config import get_settings
from supplyhub_shared.schemas.admin import SessionEnvelope, SessionResponse
from supplyhub_shared.schemas.common import Envelope

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


@router.get("/session", response_model=SessionEnvelope)
async def get_current_session(caller: SessionUser = Depends(require_session)):
    return SessionEnvelope(
        session=SessionResponse(user_id=caller.user_id, role=caller.global_role)
    )


@router.post("/logout", response_model=Envelope)
async def logout(response: Response, caller: SessionUser = Depends(require_session)):
    """Revoke the current token and clear the session cookies."""
    if caller.jti:
        ttl = settings.jwt_expire_minutes * 60
        if caller.expires_at is not None:
            ttl = int((caller.expires_at - datetime.now(timezone.utc)).total_seconds())
        await revoke_session(caller.jti, ttl_seconds=ttl)

    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.csrf_cookie_name, path="/")
    log.info("auth.logout", user_id=str(caller.user_id))
    return Envelope(message="Logged out")
