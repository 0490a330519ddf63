"""
sphere.services.identity_service — Accounts, Passwords & Sessions
==================================================================

Owns everything about *who* a caller is:

* registration with the password policy (≥ 6 chars, a letter, a digit),
* bcrypt password hashing,
* session issuance / verification / logout,
* login throttling via :class:`~sphere.services.login_throttle.LoginThrottle`,
* the small profile surface (online flag, profile fields, public lookup).

Session tokens are HS256-signed JWTs carrying ``sub`` (username) and a
random ``jti``.  The signature lets the transport layer reject garbage
without a storage round trip; the ``session:<token>`` record stays the only
authority, so deleting it ends the session.  Tokens never expire.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from typing import Any

import bcrypt
import jwt
from jwt.exceptions import InvalidTokenError

from sphere.constants import PROFILE_FIELDS, now_ms, session_key, user_key
from sphere.database.kv import KVStore
from sphere.errors import (
    Conflict,
    InvalidCredentials,
    InvalidInput,
    NotFound,
    RateLimited,
)
from sphere.services.login_throttle import LoginThrottle

logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt ignores / rejects anything longer

_USERNAME_RE = re.compile(r"[\w.\-]{1,64}")
_LETTER_RE = re.compile(r"[^\W\d_]")
_DIGIT_RE = re.compile(r"[0-9]")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def validate_password(password: str) -> str | None:
    """Return an error message if *password* violates the policy, else None."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
    if not _LETTER_RE.search(password):
        return "Password must contain letters"
    if not _DIGIT_RE.search(password):
        return "Password must contain digits"
    return None


def validate_username(username: str) -> str | None:
    if not _USERNAME_RE.fullmatch(username or ""):
        return "Username may only contain letters, digits, '.', '_' and '-' (1-64 chars)"
    return None


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


def public_user(user: dict) -> dict:
    """Strip credential material before a user document leaves the service."""
    return {k: v for k, v in user.items() if k not in ("passwordHash", "password")}


def new_user_document(
    username: str,
    password_hash: str,
    email: str,
    *,
    first_name: str = "",
    last_name: str = "",
    avatar: str = "",
    banner: str = "",
    is_admin: bool = False,
    is_verified: bool = False,
    is_online: bool = True,
    bio: str = "",
) -> dict[str, Any]:
    return {
        "username": username,
        "passwordHash": password_hash,
        "email": email,
        "firstName": first_name,
        "lastName": last_name,
        "avatar": avatar,
        "banner": banner,
        "isAdmin": is_admin,
        "isVerified": is_verified,
        "isOnline": is_online,
        "followers": [],
        "following": [],
        "posts": [],
        "bio": bio,
        "location": "",
        "website": "",
        "createdAt": now_ms(),
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class IdentityService:
    """Registration, login, sessions and profile updates over a :class:`KVStore`."""

    def __init__(
        self,
        kv: KVStore,
        throttle: LoginThrottle,
        *,
        secret: str,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.kv = kv
        self.throttle = throttle
        self.secret = secret
        self.bcrypt_rounds = bcrypt_rounds

    # -- sessions ----------------------------------------------------------
    async def _issue_session(self, username: str) -> str:
        token = jwt.encode(
            {"sub": username, "jti": secrets.token_urlsafe(16), "iat": now_ms() // 1000},
            self.secret,
            algorithm=SESSION_ALGORITHM,
        )
        await self.kv.set(session_key(token), {"username": username, "createdAt": now_ms()})
        return token

    def _token_subject(self, token: str) -> str | None:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[SESSION_ALGORITHM])
        except InvalidTokenError:
            return None
        return payload.get("sub")

    async def resolve_session(self, token: str) -> str | None:
        """Return the username behind a live session token, or None."""
        if not token or self._token_subject(token) is None:
            return None
        session = await self.kv.get(session_key(token))
        if session is None:
            return None
        return session.get("username")

    async def verify_session(self, token: str, username: str) -> tuple[bool, dict | None]:
        owner = await self.resolve_session(token)
        if owner is None or owner != username:
            return False, None
        user = await self.kv.get(user_key(username))
        if user is None:
            return False, None
        return True, public_user(user)

    async def logout(self, token: str) -> None:
        await self.kv.delete(session_key(token))

    # -- accounts ----------------------------------------------------------
    async def register(
        self,
        username: str,
        password: str,
        email: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        avatar: str | None = None,
        banner: str | None = None,
    ) -> tuple[dict, str]:
        error = validate_username(username)
        if error:
            raise InvalidInput(error)

        async with self.kv.lock(user_key(username)):
            if await self.kv.get(user_key(username)) is not None:
                raise Conflict("User already exists")

            error = validate_password(password)
            if error:
                raise InvalidInput(error)

            password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
            user = new_user_document(
                username,
                password_hash,
                email,
                first_name=first_name or "",
                last_name=last_name or "",
                avatar=avatar or "",
                banner=banner or "",
            )
            await self.kv.set(user_key(username), user)

        token = await self._issue_session(username)
        logger.info("Registered user %s", username)
        return public_user(user), token

    async def login(self, username: str, password: str) -> tuple[dict, str]:
        allowed, remaining = self.throttle.check(username)
        if not allowed:
            logger.warning("Login blocked for %s (%d min remaining)", username, remaining)
            raise RateLimited(
                f"Too many login attempts. Try again in {remaining} minutes",
                retry_after_minutes=remaining,
            )

        user = await self.kv.get(user_key(username))
        valid = user is not None and await asyncio.to_thread(
            check_password, password, user.get("passwordHash", "")
        )
        if not valid:
            attempt = self.throttle.record_failure(username)
            logger.info("Failed login for %s (%d consecutive)", username, attempt.count)
            raise InvalidCredentials("Invalid username or password")

        self.throttle.record_success(username)

        async with self.kv.lock(user_key(username)):
            user = await self.kv.get(user_key(username)) or user
            user["isOnline"] = True
            await self.kv.set(user_key(username), user)

        token = await self._issue_session(username)
        return public_user(user), token

    # -- profile -----------------------------------------------------------
    async def get_user(self, username: str) -> dict:
        user = await self.kv.get(user_key(username))
        if user is None:
            raise NotFound("User not found")
        return public_user(user)

    async def update_online(self, username: str, is_online: bool) -> None:
        async with self.kv.lock(user_key(username)):
            user = await self.kv.get(user_key(username))
            if user is None:
                raise NotFound("User not found")
            user["isOnline"] = bool(is_online)
            await self.kv.set(user_key(username), user)

    async def update_profile(self, username: str, updates: dict[str, Any]) -> dict:
        """Apply whitelisted profile fields; anything else in *updates* is ignored."""
        async with self.kv.lock(user_key(username)):
            user = await self.kv.get(user_key(username))
            if user is None:
                raise NotFound("User not found")
            for field in PROFILE_FIELDS:
                if updates.get(field) is not None:
                    user[field] = updates[field]
            await self.kv.set(user_key(username), user)
        return public_user(user)
