"""
sphere.api.routes.posts — Feed posts, likes & comments
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from sphere.api.deps import enforce_session, ensure_actor, get_kv
from sphere.database.kv import KVStore
from sphere.services import content_service
from sphere.services.content_service import POST

router = APIRouter(tags=["posts"], dependencies=[Depends(enforce_session)])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class MediaItem(BaseModel):
    url: str
    type: str


class CreatePostBody(BaseModel):
    username: str
    content: str
    media: list[MediaItem] = Field(default_factory=list)


class PostActionBody(BaseModel):
    postId: str
    username: str


class CommentBody(BaseModel):
    postId: str
    username: str
    content: str
    media: list[MediaItem] | None = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/create-post")
async def create_post(
    body: CreatePostBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    post = await content_service.create_post(
        kv, body.username, body.content, [m.model_dump() for m in body.media]
    )
    return {"post": post}


@router.get("/get-posts")
async def get_posts(kv: KVStore = Depends(get_kv)):
    return {"posts": await content_service.list_content(kv, POST)}


@router.get("/get-user-posts/{username}")
async def get_user_posts(username: str, kv: KVStore = Depends(get_kv)):
    return {"posts": await content_service.list_user_posts(kv, username)}


@router.post("/like-post")
async def like_post(
    body: PostActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    return {"post": await content_service.like_content(kv, POST, body.postId, body.username)}


@router.post("/unlike-post")
async def unlike_post(
    body: PostActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    return {"post": await content_service.unlike_content(kv, POST, body.postId, body.username)}


@router.post("/add-comment")
async def add_comment(
    body: CommentBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    post = await content_service.add_comment(kv, body.postId, body.username, body.content)
    return {"post": post}


@router.post("/comment-post")
async def comment_post(
    body: CommentBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    """Like ``/add-comment`` but notifies the post's author."""
    ensure_actor(session_user, body.username)
    post = await content_service.add_comment(
        kv,
        body.postId,
        body.username,
        body.content,
        media=[m.model_dump() for m in body.media or []],
        notify=True,
    )
    return {"post": post}


@router.post("/delete-post")
async def delete_post(
    body: PostActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    await content_service.delete_content(kv, POST, body.postId, body.username)
    return {"success": True}
