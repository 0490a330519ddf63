"""
sphere.api.deps — FastAPI dependency injection
===============================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import Engine

from sphere.config import SphereConfig, load_config
from sphere.database.engine import create_db_engine
from sphere.database.kv import KVStore
from sphere.errors import Forbidden
from sphere.services.identity_service import IdentityService
from sphere.services.login_throttle import LoginThrottle

_WEAK_SECRETS = frozenset({
    "sphere-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32


def _load_session_secret() -> str:
    """Load and validate SESSION_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("SESSION_SECRET", "")
    if not secret:
        raise RuntimeError(
            "SESSION_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"SESSION_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"SESSION_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


SESSION_SECRET: str = _load_session_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> SphereConfig:
    return load_config()


@lru_cache(maxsize=4)
def _kv_for(engine: Engine, timeout: float) -> KVStore:
    # One store per engine so every request shares the same per-key locks.
    return KVStore(engine, timeout=timeout)


def get_kv(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[SphereConfig, Depends(get_config)],
) -> KVStore:
    return _kv_for(engine, cfg.kv_timeout_seconds)


@lru_cache(maxsize=1)
def get_login_throttle() -> LoginThrottle:
    """The process-wide login throttle.  Lives as long as the process."""
    cfg = get_config()
    return LoginThrottle(
        max_failures=cfg.login_max_failures,
        block_seconds=cfg.login_block_minutes * 60,
    )


def get_identity(
    kv: Annotated[KVStore, Depends(get_kv)],
    throttle: Annotated[LoginThrottle, Depends(get_login_throttle)],
    cfg: Annotated[SphereConfig, Depends(get_config)],
) -> IdentityService:
    return IdentityService(
        kv, throttle, secret=SESSION_SECRET, bcrypt_rounds=cfg.bcrypt_rounds
    )


async def enforce_session(
    authorization: Annotated[str | None, Header()] = None,
    cfg: SphereConfig = Depends(get_config),
    identity: IdentityService = Depends(get_identity),
) -> str | None:
    """Bearer-token gate for non-auth routes.

    A no-op unless ``require_auth`` is enabled.  When enabled, returns the
    username behind the session token or raises 401.  Routes that act on
    behalf of a named user pass the result to :func:`ensure_actor`.
    """
    if not cfg.require_auth:
        return None
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    username = await identity.resolve_session(token)
    if username is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return username


def ensure_actor(session_user: str | None, actor: str) -> None:
    """Reject a request that names someone other than the session's user.

    *session_user* is what :func:`enforce_session` resolved; it is ``None``
    when ``require_auth`` is off, and then nothing is checked.
    """
    if session_user is not None and session_user != actor:
        raise Forbidden("Session does not belong to this user")
