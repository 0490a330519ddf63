"""
sphere.services.search_service — Index-free Search
===================================================

Linear scan with case-insensitive substring matching over users (username,
first and last name) and posts (content).  No ranking, no pagination.
"""

from __future__ import annotations

from sphere.constants import POST_PREFIX, USER_PREFIX
from sphere.database.kv import KVStore
from sphere.services.identity_service import public_user

USER_SEARCH_FIELDS = ("username", "firstName", "lastName")


def _contains(value: object, needle: str) -> bool:
    return isinstance(value, str) and needle in value.lower()


async def search(kv: KVStore, query: str) -> dict[str, list[dict]]:
    needle = (query or "").lower()

    users = await kv.get_by_prefix(USER_PREFIX)
    matched_users = [
        public_user(u)
        for u in users
        if any(_contains(u.get(field), needle) for field in USER_SEARCH_FIELDS)
    ]

    posts = await kv.get_by_prefix(POST_PREFIX)
    matched_posts = [p for p in posts if _contains(p.get("content"), needle)]

    return {"users": matched_users, "posts": matched_posts}
