"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid SESSION_SECRET is always set for test runs.
# This must happen before any import of sphere.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_SESSION_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("SESSION_SECRET", _TEST_SESSION_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

from sphere.config import SphereConfig  # noqa: E402
from sphere.database.kv import KVStore  # noqa: E402
from sphere.database.models import Base  # noqa: E402
from sphere.services.identity_service import IdentityService  # noqa: E402
from sphere.services.login_throttle import LoginThrottle  # noqa: E402

# bcrypt's minimum cost keeps the suite fast
TEST_CONFIG = SphereConfig(bcrypt_rounds=4, admin_password="admin123")


def run_async(coro):
    """Run an async coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with the ``kv_store`` table.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in the KV store).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def kv(db_engine: Engine) -> KVStore:
    return KVStore(db_engine, timeout=5.0)


@pytest.fixture
def throttle() -> LoginThrottle:
    return LoginThrottle()


@pytest.fixture
def identity(kv: KVStore, throttle: LoginThrottle) -> IdentityService:
    return IdentityService(
        kv, throttle, secret=os.environ["SESSION_SECRET"], bcrypt_rounds=4
    )


@pytest.fixture
def register(identity: IdentityService):
    """Factory: register a user with a valid password, return (user, token)."""

    def _register(username: str, password: str = "abc123", **kwargs):
        return run_async(
            identity.register(username, password, f"{username}@example.com", **kwargs)
        )

    return _register


@pytest.fixture
def admin(kv: KVStore) -> str:
    """Seed the default admin account and return its username."""
    from sphere.database.seed import seed_admin

    run_async(seed_admin(kv, TEST_CONFIG))
    return TEST_CONFIG.admin_username


@pytest.fixture
def app_config() -> SphereConfig:
    return TEST_CONFIG


@pytest.fixture
def client(db_engine, kv, throttle, app_config):
    """FastAPI TestClient wired to the test SQLite engine."""
    from fastapi.testclient import TestClient

    from sphere.api.deps import get_config, get_engine, get_kv, get_login_throttle
    from sphere.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_kv] = lambda: kv
    app.dependency_overrides[get_login_throttle] = lambda: throttle
    app.dependency_overrides[get_config] = lambda: app_config

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
