"""
sphere.constants — Shared Constants & Helpers
==============================================

Single source of truth for KV key layout, id generation and timestamps.
Import from here instead of building key strings by hand in services.
"""

from __future__ import annotations

import secrets
import string
import time

# ---------------------------------------------------------------------------
# KV key prefixes
# ---------------------------------------------------------------------------
USER_PREFIX = "user:"
SESSION_PREFIX = "session:"
POST_PREFIX = "post:"
CLIP_PREFIX = "clip:"
TRACK_PREFIX = "track:"
NOTIFICATION_PREFIX = "notification:"
FILE_PREFIX = "file:"


def user_key(username: str) -> str:
    return f"{USER_PREFIX}{username}"


def session_key(token: str) -> str:
    return f"{SESSION_PREFIX}{token}"


def notification_key(recipient: str, notif_id: str) -> str:
    return f"{NOTIFICATION_PREFIX}{recipient}:{notif_id}"


def notification_prefix(recipient: str) -> str:
    return f"{NOTIFICATION_PREFIX}{recipient}:"


def file_key(username: str, file_type: str, file_id: str) -> str:
    return f"{FILE_PREFIX}{username}:{file_type}:{file_id}"


# ---------------------------------------------------------------------------
# Profile fields a user may change through /update-profile
# ---------------------------------------------------------------------------
PROFILE_FIELDS: tuple[str, ...] = (
    "firstName",
    "lastName",
    "bio",
    "location",
    "website",
    "avatar",
    "banner",
)


# ---------------------------------------------------------------------------
# Ids & time
# ---------------------------------------------------------------------------
_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Time-prefixed random id: base36 milliseconds + 64 random bits."""
    return _to_base36(now_ms()) + secrets.token_hex(8)
