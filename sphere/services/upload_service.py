"""
sphere.services.upload_service — Inline Upload Ingest
======================================================

Uploads (avatars, banners, post media, clip videos, track audio and covers)
are stored in the KV store as ``data:`` URLs.  The data URL itself is what
callers get back and embed in User / Post / Clip / Track fields, so media is
served straight from the documents with no separate file endpoint.

Nothing garbage-collects uploads that end up unreferenced.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re

from sphere.constants import file_key, new_id, now_ms
from sphere.database.kv import KVStore
from sphere.errors import InvalidInput, PayloadTooLarge

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MiB
DEFAULT_MIME_TYPE = "application/octet-stream"

_TYPE_RE = re.compile(r"^[A-Za-z0-9_\-]{1,32}$")
_MIME_RE = re.compile(r"^[\w.+\-]+/[\w.+\-]+$")


def to_data_url(content: bytes, mime_type: str | None) -> str:
    """Encode *content* as ``data:<mime>;base64,<payload>``."""
    mime = mime_type if mime_type and _MIME_RE.match(mime_type) else DEFAULT_MIME_TYPE
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


async def save_upload(
    kv: KVStore,
    username: str,
    file_type: str,
    content: bytes,
    content_type: str | None = None,
    *,
    max_size: int = MAX_FILE_SIZE,
) -> str:
    """Validate, encode and persist an uploaded blob.

    Parameters
    ----------
    username:
        Uploader; part of the storage key.
    file_type:
        Caller-chosen category (``avatar``, ``banner``, ``post``, ``clip``,
        ``track``...); part of the storage key.
    content:
        Raw file bytes.
    content_type:
        MIME type from the upload header.

    Returns
    -------
    str
        The ``data:`` URL to store on the owning document.

    Raises
    ------
    PayloadTooLarge
        If *content* exceeds *max_size* bytes.
    InvalidInput
        If *username* or *file_type* is missing or malformed.
    """
    if len(content) > max_size:
        raise PayloadTooLarge(
            f"File too large: {len(content)} bytes (max {max_size // 1024 // 1024}MB)"
        )
    if not username or ":" in username:
        raise InvalidInput("A valid username is required")
    if not _TYPE_RE.match(file_type or ""):
        raise InvalidInput(f"Invalid upload type: {file_type!r}")

    # base64 of a few MiB is CPU work; keep it off the event loop
    data_url = await asyncio.to_thread(to_data_url, content, content_type)

    file_id = new_id()
    await kv.set(
        file_key(username, file_type, file_id),
        {
            "id": file_id,
            "username": username,
            "type": file_type,
            "dataUrl": data_url,
            "mimeType": content_type or DEFAULT_MIME_TYPE,
            "size": len(content),
            "timestamp": now_ms(),
        },
    )
    logger.info("Stored %s upload %s for %s (%d bytes)", file_type, file_id, username, len(content))
    return data_url
