"""
sphere.api.routes.admin — Admin endpoints (isAdmin-gated)
==========================================================

Each route names its acting admin (``adminUsername``); the service layer
reloads that user and checks ``isAdmin`` on every call.  With
``require_auth`` on, ``adminUsername`` must also be the session's user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from sphere.api.deps import enforce_session, ensure_actor, get_kv
from sphere.database.kv import KVStore
from sphere.services import admin_service

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(enforce_session)])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class TargetBody(BaseModel):
    adminUsername: str
    targetUsername: str


class BroadcastBody(BaseModel):
    adminUsername: str
    message: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/verify-user")
async def verify_user(
    body: TargetBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    """Toggle the target's verified badge."""
    ensure_actor(session_user, body.adminUsername)
    user = await admin_service.verify_user(kv, body.adminUsername, body.targetUsername)
    return {"success": True, "user": user}


@router.post("/delete-user")
async def delete_user(
    body: TargetBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.adminUsername)
    await admin_service.delete_user(kv, body.adminUsername, body.targetUsername)
    return {"success": True}


@router.get("/stats")
async def get_stats(
    adminUsername: str = Query(""),
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, adminUsername)
    return {"stats": await admin_service.stats(kv, adminUsername)}


@router.post("/broadcast")
async def broadcast(
    body: BroadcastBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.adminUsername)
    delivered = await admin_service.broadcast(kv, body.adminUsername, body.message)
    return {"success": True, "delivered": delivered}
