"""
sphere.database.kv — Async Key-Value Store
===========================================

The whole service talks to storage through four calls::

    await kv.get(key)              # -> dict | None
    await kv.set(key, value)       # upsert a JSON document
    await kv.delete(key)           # no-op if absent
    await kv.get_by_prefix(prefix) # -> list[dict], ordered by key (case-sensitive)

There are no transactions and no secondary indexes.  Each call is a single
statement run on a worker thread via :func:`~sphere.database.engine.run_db`
and bounded by ``timeout`` seconds.

:meth:`KVStore.lock` hands out a per-key :class:`asyncio.Lock` so
read-modify-write sequences on one aggregate (a post's likes, a user's
follow sets) don't interleave inside this process.  It gives no protection
across processes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from typing import Any

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from sphere.database.engine import get_session, run_db
from sphere.database.models import KVEntry
from sphere.errors import Internal

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class KVStore:
    """JSON documents keyed by opaque strings, backed by the ``kv_store`` table."""

    def __init__(self, engine: Engine, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.engine = engine
        self.timeout = timeout
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # ------------------------------------------------------------------
    # Sync implementations (run on a worker thread)
    # ------------------------------------------------------------------
    def _get(self, key: str) -> dict | None:
        with Session(self.engine) as session:
            row = session.get(KVEntry, key)
            if row is None:
                return None
            return json.loads(row.value_json)

    def _set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        with get_session(self.engine) as session:
            row = session.get(KVEntry, key)
            if row is None:
                session.add(KVEntry(key=key, value_json=payload))
            else:
                row.value_json = payload

    def _delete(self, key: str) -> None:
        with get_session(self.engine) as session:
            session.execute(delete(KVEntry).where(KVEntry.key == key))

    def _get_by_prefix(self, prefix: str) -> list[dict]:
        with Session(self.engine) as session:
            rows = session.execute(
                select(KVEntry.key, KVEntry.value_json).where(
                    KVEntry.key.startswith(prefix, autoescape=True)
                )
            ).all()
        # LIKE ignores case on SQLite; the key match itself must not.
        matched = sorted((key, raw) for key, raw in rows if key.startswith(prefix))
        return [json.loads(raw) for _, raw in matched]

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------
    async def _call(self, func, *args):
        try:
            return await asyncio.wait_for(run_db(func, *args), timeout=self.timeout)
        except TimeoutError as exc:
            logger.error(
                "KV %s timed out after %.1fs (key=%r)", func.__name__, self.timeout, args[0]
            )
            raise Internal("Storage request timed out") from exc

    async def get(self, key: str) -> dict | None:
        return await self._call(self._get, key)

    async def set(self, key: str, value: Any) -> None:
        await self._call(self._set, key, value)

    async def delete(self, key: str) -> None:
        await self._call(self._delete, key)

    async def get_by_prefix(self, prefix: str) -> list[dict]:
        return await self._call(self._get_by_prefix, prefix)

    def lock(self, key: str) -> asyncio.Lock:
        """Return the in-process lock guarding read-modify-write on *key*."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock
