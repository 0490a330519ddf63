"""
sphere.api.routes.media — Clips, music tracks & uploads
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from sphere.api.deps import enforce_session, ensure_actor, get_config, get_kv
from sphere.config import SphereConfig
from sphere.database.kv import KVStore
from sphere.errors import InvalidInput
from sphere.services import content_service, upload_service
from sphere.services.content_service import CLIP, TRACK

router = APIRouter(tags=["media"], dependencies=[Depends(enforce_session)])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CreateClipBody(BaseModel):
    username: str
    videoUrl: str
    thumbnail: str = ""
    title: str = ""


class ClipActionBody(BaseModel):
    clipId: str
    username: str


class UploadTrackBody(BaseModel):
    username: str
    title: str
    audioUrl: str
    artist: str = ""
    coverUrl: str = ""
    duration: float = 0


class TrackActionBody(BaseModel):
    trackId: str
    username: str


# ---------------------------------------------------------------------------
# Clips
# ---------------------------------------------------------------------------
@router.post("/create-clip")
async def create_clip(
    body: CreateClipBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    clip = await content_service.create_clip(
        kv, body.username, body.videoUrl, thumbnail=body.thumbnail, title=body.title
    )
    return {"clip": clip}


@router.get("/get-clips")
async def get_clips(kv: KVStore = Depends(get_kv)):
    return {"clips": await content_service.list_content(kv, CLIP)}


@router.post("/like-clip")
async def like_clip(
    body: ClipActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    return {"clip": await content_service.toggle_like(kv, CLIP, body.clipId, body.username)}


@router.post("/delete-clip")
async def delete_clip(
    body: ClipActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    await content_service.delete_content(kv, CLIP, body.clipId, body.username)
    return {"success": True}


# ---------------------------------------------------------------------------
# Tracks
# ---------------------------------------------------------------------------
@router.post("/upload-track")
async def upload_track(
    body: UploadTrackBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    track = await content_service.create_track(
        kv,
        body.username,
        body.title,
        body.audioUrl,
        artist=body.artist,
        cover_url=body.coverUrl,
        duration=body.duration,
    )
    return {"track": track}


@router.get("/get-tracks")
async def get_tracks(kv: KVStore = Depends(get_kv)):
    return {"tracks": await content_service.list_content(kv, TRACK)}


@router.post("/like-track")
async def like_track(
    body: TrackActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    return {"track": await content_service.toggle_like(kv, TRACK, body.trackId, body.username)}


@router.post("/delete-track")
async def delete_track(
    body: TrackActionBody,
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
):
    ensure_actor(session_user, body.username)
    await content_service.delete_content(kv, TRACK, body.trackId, body.username)
    return {"success": True}


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------
@router.post("/upload")
async def upload(
    file: UploadFile | None = File(None),
    username: str = Form(""),
    file_type: str = Form("", alias="type"),
    session_user: str | None = Depends(enforce_session),
    kv: KVStore = Depends(get_kv),
    cfg: SphereConfig = Depends(get_config),
):
    """Store a file inline and return its ``data:`` URL."""
    ensure_actor(session_user, username)
    if file is None:
        raise InvalidInput("File not found")

    # Read one byte past the limit so oversize files are detected without
    # buffering them whole.
    content = await file.read(cfg.max_upload_bytes + 1)
    url = await upload_service.save_upload(
        kv,
        username,
        file_type,
        content,
        file.content_type,
        max_size=cfg.max_upload_bytes,
    )
    return {"url": url}
