"""
sphere.api.routes.users — Profiles, presence & follows
=======================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from sphere.api.deps import enforce_session, ensure_actor, get_identity, get_kv
from sphere.database.kv import KVStore
from sphere.services import content_service
from sphere.services.identity_service import IdentityService

router = APIRouter(tags=["users"], dependencies=[Depends(enforce_session)])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class OnlineBody(BaseModel):
    username: str
    isOnline: bool


class ProfileBody(BaseModel):
    username: str
    updates: dict[str, Any] = Field(default_factory=dict)


class FollowBody(BaseModel):
    follower: str
    following: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/update-online")
async def update_online(
    body: OnlineBody,
    session_user: str | None = Depends(enforce_session),
    identity: IdentityService = Depends(get_identity),
):
    ensure_actor(session_user, body.username)
    await identity.update_online(body.username, body.isOnline)
    return {"success": True}


@router.get("/get-user/{username}")
async def get_user(username: str, identity: IdentityService = Depends(get_identity)):
    return {"user": await identity.get_user(username)}


@router.post("/update-profile")
async def update_profile(
    body: ProfileBody,
    session_user: str | None = Depends(enforce_session),
    identity: IdentityService = Depends(get_identity),
):
    ensure_actor(session_user, body.username)
    return {"user": await identity.update_profile(body.username, body.updates)}


@router.post("/follow")
async def follow(
    body: FollowBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.follower)
    await content_service.follow(kv, body.follower, body.following)
    return {"success": True}


@router.post("/unfollow")
async def unfollow(
    body: FollowBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.follower)
    await content_service.unfollow(kv, body.follower, body.following)
    return {"success": True}
