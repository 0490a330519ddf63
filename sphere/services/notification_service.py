"""
sphere.services.notification_service — Notification Fan-out
============================================================

Writes one ``notification:<recipient>:<id>`` record per recipient.  Emission
is fire-and-forget: a failed write is logged and swallowed so the mutation
that triggered it (a like, a follow, a comment) still reports success.

Read state is write-once ``False``; nothing marks notifications read.
"""

from __future__ import annotations

import enum
import logging

from sphere.constants import (
    USER_PREFIX,
    new_id,
    notification_key,
    notification_prefix,
    now_ms,
    user_key,
)
from sphere.database.kv import KVStore
from sphere.errors import Forbidden

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "system"


class NotificationType(enum.StrEnum):
    FOLLOW = "follow"
    LIKE = "like"
    COMMENT = "comment"
    SYSTEM = "system"


async def emit(
    kv: KVStore,
    recipient: str,
    type_: NotificationType,
    sender: str,
    message: str,
    *,
    post_id: str | None = None,
) -> dict | None:
    """Persist a notification for *recipient*.  Never raises.

    Returns the stored record, or ``None`` if the write failed.
    """
    notif_id = new_id()
    record = {
        "id": notif_id,
        "type": str(type_),
        "from": sender,
        "message": message,
        "timestamp": now_ms(),
        "read": False,
    }
    if post_id is not None:
        record["postId"] = post_id
    try:
        await kv.set(notification_key(recipient, notif_id), record)
    except Exception:
        logger.exception("Failed to emit %s notification to %s", type_, recipient)
        return None
    return record


async def broadcast(kv: KVStore, admin_username: str, message: str) -> int:
    """Send a ``system`` notification to every user.  Returns the fan-out count.

    Raises :class:`Forbidden` unless *admin_username* resolves to an admin.
    """
    admin = await kv.get(user_key(admin_username))
    if not admin or not admin.get("isAdmin"):
        raise Forbidden("Administrator rights required")

    users = await kv.get_by_prefix(USER_PREFIX)
    delivered = 0
    for user in users:
        if await emit(kv, user["username"], NotificationType.SYSTEM, SYSTEM_SENDER, message):
            delivered += 1
    logger.info("Broadcast by %s delivered to %d/%d users", admin_username, delivered, len(users))
    return delivered


async def list_notifications(kv: KVStore, username: str) -> list[dict]:
    notifications = await kv.get_by_prefix(notification_prefix(username))
    return sorted(notifications, key=lambda n: n.get("timestamp", 0), reverse=True)
