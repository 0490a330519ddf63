"""
tests/test_config.py — YAML Configuration Loading
==================================================
"""

from __future__ import annotations

import pytest

from sphere.config import SphereConfig, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv("SPHERE_ADMIN_PASSWORD", raising=False)
    monkeypatch.delenv("SPHERE_CONFIG", raising=False)
    # Keep a stray config.yaml in the working directory out of the picture
    monkeypatch.chdir(tmp_path)


def test_defaults_when_no_file():
    cfg = load_config()
    assert cfg == SphereConfig()
    assert cfg.login_max_failures == 3
    assert cfg.login_block_minutes == 15
    assert cfg.max_upload_bytes == 5 * 1024 * 1024
    assert cfg.require_auth is False


def test_reads_yaml(tmp_path):
    path = tmp_path / "sphere.yaml"
    path.write_text("login_max_failures: 5\nrequire_auth: true\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.login_max_failures == 5
    assert cfg.require_auth is True
    assert cfg.admin_username == "admin"


def test_sphere_config_env_points_at_file(tmp_path, monkeypatch):
    path = tmp_path / "other.yaml"
    path.write_text("bcrypt_rounds: 10\n", encoding="utf-8")
    monkeypatch.setenv("SPHERE_CONFIG", str(path))
    assert load_config().bcrypt_rounds == 10


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == SphereConfig()


def test_unknown_keys_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("login_max_failures: 5\nbogus: 1\n", encoding="utf-8")
    with pytest.raises(ValueError, match="bogus"):
        load_config(path)


def test_explicit_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_admin_password_env_override(monkeypatch):
    monkeypatch.setenv("SPHERE_ADMIN_PASSWORD", "s3cret-pass")
    cfg = load_config()
    assert cfg.admin_password == "s3cret-pass"
    assert cfg.admin_username == "admin"
