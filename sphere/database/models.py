"""
sphere.database.models — SQLAlchemy 2.0 Data Models
====================================================

The service sees a flat key-value store; this module is the only place
that knows it lives in a relational table.

Tables:
- kv_store — one row per key; ``value_json`` holds the JSON document
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Sphere ORM models."""


# ---------------------------------------------------------------------------
# KV entries — users, sessions, posts, clips, tracks, notifications, files
# ---------------------------------------------------------------------------
class KVEntry(Base):
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<KVEntry key={self.key!r}>"
