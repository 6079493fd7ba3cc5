"""
Membership notification outbox.

Notifications ("you were added to X", "you now own Y") are pushed onto a Redis
list consumed by the email subsystem. Publishing happens in a background task
after the response is sent; a failure is logged and never undoes the change
that triggered it.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.redis import get_redis

log = structlog.get_logger()
settings = get_settings()

MEMBER_ADDED = "member.added"
MEMBER_REMOVED = "member.removed"
ROLE_CHANGED = "member.role_changed"
OWNERSHIP_TRANSFERRED = "ownership.transferred"


@dataclass
class Notification:
    type: str
    recipient_id: uuid.UUID
    scope_type: str
    scope_id: uuid.UUID
    scope_name: str
    actor_id: Optional[uuid.UUID] = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        payload = asdict(self)
        payload["recipient_id"] = str(self.recipient_id)
        payload["scope_id"] = str(self.scope_id)
        payload["actor_id"] = str(self.actor_id) if self.actor_id else None
        payload["created_at"] = datetime.now(timezone.utc).isoformat()
        return json.dumps(payload)


async def publish_notification(notification: Notification) -> bool:
    """Push a notification onto the outbox. Returns False if it was not delivered."""
    if not settings.notifications_enabled:
        return False
    try:
        redis = await get_redis()
        await redis.lpush(settings.notification_queue, notification.to_json())
    except (RedisError, OSError) as exc:
        log.warning(
            "notification.publish_failed",
            type=notification.type,
            recipient_id=str(notification.recipient_id),
            error=str(exc),
        )
        return False
    log.debug(
        "notification.published",
        type=notification.type,
        recipient_id=str(notification.recipient_id),
    )
    return True
