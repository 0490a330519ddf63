"""
sphere.services.content_service — Posts, Clips, Tracks, Comments & Follows
===========================================================================

Posts, clips and tracks share one shape (create, list newest-first, like,
delete by owner or admin), so they are handled by one set of functions
parameterised by a :class:`ContentKind`.  The per-kind differences are data:

* which field names the owner (``author`` vs ``uploader``),
* whether a like notifies the owner (posts only),
* whether the id is linked from ``User.posts`` (posts only).

Posts expose explicit like / unlike; clips and tracks expose a toggle, as the
HTTP surface always has.  All three go through the same membership helpers,
so the "no duplicate likes" rule holds everywhere.

Consistency
-----------
The store has single-key writes only.  Compound mutations write the
authoritative record first (the post before the user's ``posts`` link, the
follower's ``following`` before the target's ``followers``) and hold the
per-key locks from :meth:`KVStore.lock` around each read-modify-write.  A
crash between the two writes can still leave a half-applied change;
``follow`` repairs that state when retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from sphere.constants import (
    CLIP_PREFIX,
    POST_PREFIX,
    TRACK_PREFIX,
    new_id,
    now_ms,
    user_key,
)
from sphere.database.kv import KVStore
from sphere.errors import Forbidden, InvalidInput, NotFound
from sphere.services import notification_service
from sphere.services.notification_service import NotificationType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Content kinds
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ContentKind:
    name: str
    prefix: str
    owner_field: str
    label: str
    notify_on_like: bool = False
    link_to_user: bool = False

    def key(self, entity_id: str) -> str:
        return f"{self.prefix}{entity_id}"


POST = ContentKind("post", POST_PREFIX, "author", "Post", notify_on_like=True, link_to_user=True)
CLIP = ContentKind("clip", CLIP_PREFIX, "author", "Clip")
TRACK = ContentKind("track", TRACK_PREFIX, "uploader", "Track")


# ---------------------------------------------------------------------------
# Set helpers (sets are stored as JSON arrays)
# ---------------------------------------------------------------------------
def _add_member(items: list[str], value: str) -> bool:
    """Append *value* if absent. Returns True if the list changed."""
    if value in items:
        return False
    items.append(value)
    return True


def _remove_member(items: list[str], value: str) -> list[str]:
    return [item for item in items if item != value]


def _newest_first(docs: list[dict]) -> list[dict]:
    return sorted(docs, key=lambda d: d.get("timestamp", 0), reverse=True)


async def _require_user(kv: KVStore, username: str) -> dict:
    user = await kv.get(user_key(username))
    if user is None:
        raise NotFound("User not found")
    return user


# ---------------------------------------------------------------------------
# Generic operations
# ---------------------------------------------------------------------------
async def get_content(kv: KVStore, kind: ContentKind, entity_id: str) -> dict:
    doc = await kv.get(kind.key(entity_id))
    if doc is None:
        raise NotFound(f"{kind.label} not found")
    return doc


async def create_content(
    kv: KVStore, kind: ContentKind, owner: str, fields: dict[str, Any]
) -> dict:
    """Persist a new entity owned by *owner*; link it from the user if the kind asks."""
    await _require_user(kv, owner)

    entity_id = new_id()
    doc = {
        "id": entity_id,
        kind.owner_field: owner,
        **fields,
        "likes": [],
        "timestamp": now_ms(),
    }
    await kv.set(kind.key(entity_id), doc)

    if kind.link_to_user:
        async with kv.lock(user_key(owner)):
            user = await kv.get(user_key(owner))
            if user is None:
                # Owner vanished between the check and the link; the entity stays.
                logger.warning("%s %s created for missing user %s", kind.label, entity_id, owner)
            else:
                user.setdefault("posts", []).append(entity_id)
                await kv.set(user_key(owner), user)

    logger.info("%s %s created by %s", kind.label, entity_id, owner)
    return doc


async def list_content(kv: KVStore, kind: ContentKind) -> list[dict]:
    """Every entity of *kind*, newest first.  O(n) prefix scan."""
    return _newest_first(await kv.get_by_prefix(kind.prefix))


async def _notify_like(kv: KVStore, kind: ContentKind, doc: dict, username: str) -> None:
    owner = doc.get(kind.owner_field)
    if kind.notify_on_like and owner and owner != username:
        await notification_service.emit(
            kv,
            owner,
            NotificationType.LIKE,
            username,
            f"{username} liked your {kind.name}",
            post_id=doc["id"],
        )


async def like_content(kv: KVStore, kind: ContentKind, entity_id: str, username: str) -> dict:
    """Idempotently add *username* to ``likes``."""
    async with kv.lock(kind.key(entity_id)):
        doc = await get_content(kv, kind, entity_id)
        added = _add_member(doc.setdefault("likes", []), username)
        if added:
            await kv.set(kind.key(entity_id), doc)

    if added:
        await _notify_like(kv, kind, doc, username)
    return doc


async def unlike_content(kv: KVStore, kind: ContentKind, entity_id: str, username: str) -> dict:
    """Remove *username* from ``likes``; a no-op if it wasn't there."""
    async with kv.lock(kind.key(entity_id)):
        doc = await get_content(kv, kind, entity_id)
        likes = doc.get("likes", [])
        if username in likes:
            doc["likes"] = _remove_member(likes, username)
            await kv.set(kind.key(entity_id), doc)
    return doc


async def toggle_like(kv: KVStore, kind: ContentKind, entity_id: str, username: str) -> dict:
    """Like if not yet liked, otherwise unlike."""
    async with kv.lock(kind.key(entity_id)):
        doc = await get_content(kv, kind, entity_id)
        likes = doc.setdefault("likes", [])
        added = _add_member(likes, username)
        if not added:
            doc["likes"] = _remove_member(likes, username)
        await kv.set(kind.key(entity_id), doc)

    if added:
        await _notify_like(kv, kind, doc, username)
    return doc


async def delete_content(kv: KVStore, kind: ContentKind, entity_id: str, requester: str) -> None:
    """Delete an entity.  Only its owner or an admin may do so.

    The requester is loaded fresh on every call so a revoked admin flag
    takes effect immediately.
    """
    async with kv.lock(kind.key(entity_id)):
        doc = await get_content(kv, kind, entity_id)
        owner = doc.get(kind.owner_field)
        if requester != owner:
            actor = await kv.get(user_key(requester))
            if not actor or not actor.get("isAdmin"):
                raise Forbidden(f"Not allowed to delete this {kind.name}")

        await kv.delete(kind.key(entity_id))

    if kind.link_to_user and owner:
        async with kv.lock(user_key(owner)):
            author = await kv.get(user_key(owner))
            if author is not None:
                author["posts"] = _remove_member(author.get("posts", []), entity_id)
                await kv.set(user_key(owner), author)

    logger.info("%s %s deleted by %s", kind.label, entity_id, requester)


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
async def create_post(
    kv: KVStore, author: str, content: str, media: list[dict] | None = None
) -> dict:
    return await create_content(
        kv,
        POST,
        author,
        {"content": content, "media": list(media or []), "comments": [], "reposts": []},
    )


async def list_user_posts(kv: KVStore, username: str) -> list[dict]:
    """Resolve ``User.posts``, drop ids that no longer resolve, newest first."""
    user = await _require_user(kv, username)
    posts = await asyncio.gather(*(kv.get(POST.key(pid)) for pid in user.get("posts", [])))
    return _newest_first([p for p in posts if p is not None])


async def add_comment(
    kv: KVStore,
    post_id: str,
    author: str,
    content: str,
    *,
    media: list[dict] | None = None,
    notify: bool = False,
) -> dict:
    """Append a comment to a post.

    With ``notify=True`` the post's author gets a ``comment`` notification
    (unless they commented on their own post).
    """
    await _require_user(kv, author)

    comment: dict[str, Any] = {
        "id": new_id(),
        "author": author,
        "content": content,
        "timestamp": now_ms(),
    }
    if media is not None:
        comment["media"] = list(media)

    async with kv.lock(POST.key(post_id)):
        post = await get_content(kv, POST, post_id)
        post.setdefault("comments", []).append(comment)
        await kv.set(POST.key(post_id), post)

    if notify and post["author"] != author:
        await notification_service.emit(
            kv,
            post["author"],
            NotificationType.COMMENT,
            author,
            f"{author} commented on your post",
            post_id=post_id,
        )
    return post


# ---------------------------------------------------------------------------
# Clips & tracks
# ---------------------------------------------------------------------------
async def create_clip(
    kv: KVStore, author: str, video_url: str, *, thumbnail: str = "", title: str = ""
) -> dict:
    return await create_content(
        kv,
        CLIP,
        author,
        {
            "videoUrl": video_url,
            "thumbnail": thumbnail or "",
            "title": title or "",
            "comments": [],
            "views": 0,
        },
    )


async def create_track(
    kv: KVStore,
    uploader: str,
    title: str,
    audio_url: str,
    *,
    artist: str = "",
    cover_url: str = "",
    duration: float = 0,
) -> dict:
    return await create_content(
        kv,
        TRACK,
        uploader,
        {
            "title": title,
            "artist": artist or uploader,
            "audioUrl": audio_url,
            "coverUrl": cover_url or "",
            "duration": duration or 0,
            "plays": 0,
        },
    )


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------
async def follow(kv: KVStore, follower: str, target: str) -> bool:
    """Make *follower* follow *target*.  Returns True if a new follow was made.

    Re-running after a partial failure fills in whichever side is missing.
    """
    if follower == target:
        raise InvalidInput("Users cannot follow themselves")

    # Lock both records in a fixed order so concurrent a→b / b→a don't deadlock.
    first, second = sorted((follower, target))
    async with kv.lock(user_key(first)), kv.lock(user_key(second)):
        follower_user = await kv.get(user_key(follower))
        target_user = await kv.get(user_key(target))
        if follower_user is None or target_user is None:
            raise NotFound("User not found")

        created = _add_member(follower_user.setdefault("following", []), target)
        if created:
            await kv.set(user_key(follower), follower_user)
        if _add_member(target_user.setdefault("followers", []), follower):
            await kv.set(user_key(target), target_user)

    if created:
        await notification_service.emit(
            kv,
            target,
            NotificationType.FOLLOW,
            follower,
            f"{follower} started following you",
        )
    return created


async def unfollow(kv: KVStore, follower: str, target: str) -> None:
    """Drop both memberships; a no-op when *follower* wasn't following."""
    if follower == target:
        raise InvalidInput("Users cannot follow themselves")

    first, second = sorted((follower, target))
    async with kv.lock(user_key(first)), kv.lock(user_key(second)):
        follower_user = await kv.get(user_key(follower))
        target_user = await kv.get(user_key(target))
        if follower_user is None or target_user is None:
            raise NotFound("User not found")

        follower_user["following"] = _remove_member(follower_user.get("following", []), target)
        await kv.set(user_key(follower), follower_user)
        target_user["followers"] = _remove_member(target_user.get("followers", []), follower)
        await kv.set(user_key(target), target_user)
