"""
sphere.api.routes.public — Notifications & search
==================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sphere.api.deps import enforce_session, ensure_actor, get_kv
from sphere.database.kv import KVStore
from sphere.services import notification_service, search_service

router = APIRouter(tags=["public"], dependencies=[Depends(enforce_session)])


@router.get("/get-notifications/{username}")
async def get_notifications(
    username: str,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, username)
    return {"notifications": await notification_service.list_notifications(kv, username)}


@router.get("/search")
async def search(q: str = Query(""), kv: KVStore = Depends(get_kv)):
    """Substring search over users and posts."""
    return await search_service.search(kv, q)
