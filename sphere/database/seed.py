"""
sphere.database.seed — Default Admin Seeder
============================================

Creates the configured administrator on first startup so the admin routes
are usable on a fresh database.

Idempotent: an existing ``user:<admin_username>`` record is never touched,
even if its password or flags were changed since.
"""

from __future__ import annotations

import asyncio
import logging

from sphere.config import SphereConfig
from sphere.constants import user_key
from sphere.database.kv import KVStore
from sphere.services.identity_service import hash_password, new_user_document

logger = logging.getLogger(__name__)


async def seed_admin(kv: KVStore, cfg: SphereConfig) -> bool:
    """Insert the admin user if missing.  Returns True if one was created."""
    key = user_key(cfg.admin_username)
    async with kv.lock(key):
        if await kv.get(key) is not None:
            return False

        password_hash = await asyncio.to_thread(
            hash_password, cfg.admin_password, cfg.bcrypt_rounds
        )
        admin = new_user_document(
            cfg.admin_username,
            password_hash,
            cfg.admin_email,
            first_name="Admin",
            last_name="User",
            is_admin=True,
            is_verified=True,
            is_online=False,
            bio="Sphere administrator",
        )
        await kv.set(key, admin)

    logger.info("Admin user created: %s", cfg.admin_username)
    return True
