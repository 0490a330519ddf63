"""
sphere.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for service settings (seeded admin account, password
hashing cost, upload limits, KV timeouts).  Secrets stay in the environment
(``.env``); everything here is safe to commit.

Usage::

    from sphere.config import load_config

    cfg = load_config()              # reads ./config.yaml if present
    print(cfg.max_upload_bytes)      # 5242880
    print(cfg.login_block_minutes)   # 15

If the file does not exist the defaults below are used, so a bare checkout
boots without any configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = "config.yaml"


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SphereConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Seeded administrator
    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_email: str = "admin@sphere.com"

    # Passwords
    bcrypt_rounds: int = 12

    # Login throttle
    login_max_failures: int = 3
    login_block_minutes: int = 15

    # Uploads
    max_upload_bytes: int = 5 * 1024 * 1024

    # KV round-trip timeout (seconds)
    kv_timeout_seconds: float = 5.0

    # Require ``Authorization: Bearer <sessionToken>`` on non-auth routes
    require_auth: bool = False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> SphereConfig:
    """Read *path* and return a :class:`SphereConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to the
        ``SPHERE_CONFIG`` environment variable, then ``config.yaml`` in the
        current working directory.

    Raises
    ------
    FileNotFoundError
        If *path* was given explicitly and doesn't exist.
    ValueError
        If the YAML file contains keys that aren't configuration fields.
    """
    explicit = path is not None
    config_path = Path(path or os.getenv("SPHERE_CONFIG", DEFAULT_CONFIG_PATH))
    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(
                f"Configuration file not found: {config_path.resolve()}\n"
                "Hint: copy config.yaml.example → config.yaml and edit it."
            )
        return _apply_env(SphereConfig())

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    known = {f.name for f in fields(SphereConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

    return _apply_env(SphereConfig(**raw))


def _apply_env(cfg: SphereConfig) -> SphereConfig:
    """Let ``SPHERE_ADMIN_PASSWORD`` override the seeded admin password."""
    password = os.getenv("SPHERE_ADMIN_PASSWORD", "").strip()
    if not password:
        return cfg
    values = {f.name: getattr(cfg, f.name) for f in fields(SphereConfig)}
    values["admin_password"] = password
    return SphereConfig(**values)
