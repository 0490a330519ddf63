"""
sphere.services.admin_service — Privileged Operations
======================================================

Every operation starts by loading the acting user from the store and
checking ``isAdmin`` on that fresh copy.  The flag is never cached, so
revoking it takes effect on the very next request.

Deleting a user removes only the ``user:<name>`` record.  Their posts,
clips, tracks, sessions, notifications and uploads stay behind as orphans;
readers already tolerate ids that no longer resolve.
"""

from __future__ import annotations

import logging

from sphere.constants import (
    CLIP_PREFIX,
    POST_PREFIX,
    TRACK_PREFIX,
    USER_PREFIX,
    user_key,
)
from sphere.database.kv import KVStore
from sphere.errors import Forbidden, NotFound
from sphere.services import notification_service
from sphere.services.identity_service import public_user

logger = logging.getLogger(__name__)


async def require_admin(kv: KVStore, admin_username: str) -> dict:
    """Return the admin's user record or raise :class:`Forbidden`."""
    admin = await kv.get(user_key(admin_username)) if admin_username else None
    if not admin or not admin.get("isAdmin"):
        logger.warning("Admin action refused for %r", admin_username)
        raise Forbidden("Administrator rights required")
    return admin


async def verify_user(kv: KVStore, admin_username: str, target_username: str) -> dict:
    """Toggle ``isVerified`` on *target_username*."""
    await require_admin(kv, admin_username)

    async with kv.lock(user_key(target_username)):
        user = await kv.get(user_key(target_username))
        if user is None:
            raise NotFound("User not found")
        user["isVerified"] = not user.get("isVerified", False)
        await kv.set(user_key(target_username), user)

    logger.info(
        "%s set isVerified=%s on %s", admin_username, user["isVerified"], target_username
    )
    return public_user(user)


async def delete_user(kv: KVStore, admin_username: str, target_username: str) -> None:
    """Hard-delete the user record.  Does not cascade."""
    await require_admin(kv, admin_username)
    await kv.delete(user_key(target_username))
    logger.info("%s deleted user %s", admin_username, target_username)


async def stats(kv: KVStore, admin_username: str) -> dict[str, int]:
    await require_admin(kv, admin_username)

    users = await kv.get_by_prefix(USER_PREFIX)
    posts = await kv.get_by_prefix(POST_PREFIX)
    clips = await kv.get_by_prefix(CLIP_PREFIX)
    tracks = await kv.get_by_prefix(TRACK_PREFIX)
    return {
        "totalUsers": len(users),
        "totalPosts": len(posts),
        "totalClips": len(clips),
        "totalTracks": len(tracks),
        "onlineUsers": sum(1 for u in users if u.get("isOnline")),
    }


async def broadcast(kv: KVStore, admin_username: str, message: str) -> int:
    return await notification_service.broadcast(kv, admin_username, message)
