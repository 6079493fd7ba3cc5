"""Shared Redis client for the session revocation list and the notification outbox."""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import get_settings

settings = get_settings()

REVOKED_SESSION_PREFIX = "sh:session:revoked:"

_client: redis.Redis | None = None


def revoked_session_key(jti: str) -> str:
    return f"{REVOKED_SESSION_PREFIX}{jti}"


async def get_redis() -> redis.Redis:
    """Return the process-wide client, connecting on first use."""
    global _client
    if _client is None:
        _client = redis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
