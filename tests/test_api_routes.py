"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the HTTP surface through the FastAPI TestClient against the
in-memory SQLite store.

These tests verify:
- Status codes and the ``{"error": ...}`` shape for every error kind
- Login throttling end to end, including the Retry-After header
- Notification side-effects of likes, comments and follows
- Admin gating and multipart uploads
- Optional bearer-session enforcement
"""

from __future__ import annotations

import dataclasses

import pytest

from conftest import TEST_CONFIG


def _register(client, username: str, password: str = "abc123", **extra) -> dict:
    resp = client.post(
        "/register",
        json={"username": username, "password": password, "email": f"{username}@x.com", **extra},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def _create_post(client, username: str, content: str = "hello") -> dict:
    resp = client.post("/create-post", json={"username": username, "content": content})
    assert resp.status_code == 200, resp.text
    return resp.json()["post"]


# ===========================================================================
# Health
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth
# ===========================================================================
class TestAuthRoutes:
    def test_register_returns_user_and_token(self, client):
        data = _register(client, "alice", firstName="Alice")
        assert data["user"]["username"] == "alice"
        assert data["user"]["firstName"] == "Alice"
        assert "passwordHash" not in data["user"]
        assert data["sessionToken"]

    def test_duplicate_register_is_400(self, client):
        _register(client, "alice")
        resp = client.post(
            "/register", json={"username": "alice", "password": "abc123", "email": "a@x.com"}
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "User already exists"}

    def test_weak_password_is_400(self, client):
        resp = client.post(
            "/register", json={"username": "alice", "password": "abc", "email": "a@x.com"}
        )
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_login_and_verify_session(self, client):
        _register(client, "alice")
        resp = client.post("/login", json={"username": "alice", "password": "abc123"})
        assert resp.status_code == 200
        token = resp.json()["sessionToken"]

        resp = client.post("/verify-session", json={"sessionToken": token, "username": "alice"})
        assert resp.status_code == 200
        assert resp.json()["valid"] is True
        assert resp.json()["user"]["username"] == "alice"

    def test_verify_session_wrong_user(self, client):
        token = _register(client, "alice")["sessionToken"]
        _register(client, "bob")
        resp = client.post("/verify-session", json={"sessionToken": token, "username": "bob"})
        assert resp.status_code == 401
        assert resp.json() == {"valid": False}

    def test_logout_revokes_token(self, client):
        token = _register(client, "alice")["sessionToken"]
        assert client.post("/logout", json={"sessionToken": token}).json() == {"success": True}
        resp = client.post("/verify-session", json={"sessionToken": token, "username": "alice"})
        assert resp.status_code == 401

    def test_bad_password_is_401(self, client):
        _register(client, "alice")
        resp = client.post("/login", json={"username": "alice", "password": "wrong1"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid username or password"}

    def test_rate_limit_blocks_correct_password(self, client):
        _register(client, "alice")
        for _ in range(3):
            resp = client.post("/login", json={"username": "alice", "password": "wrong1"})
            assert resp.status_code == 401

        resp = client.post("/login", json={"username": "alice", "password": "abc123"})
        assert resp.status_code == 401
        assert resp.json()["error"].startswith("Too many login attempts")
        assert resp.headers["Retry-After"] == str(15 * 60)

    def test_missing_field_is_400(self, client):
        resp = client.post("/login", json={"username": "alice"})
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid request")


# ===========================================================================
# Users
# ===========================================================================
class TestUserRoutes:
    def test_get_user_and_404(self, client):
        _register(client, "alice")
        assert client.get("/get-user/alice").json()["user"]["username"] == "alice"

        resp = client.get("/get-user/ghost")
        assert resp.status_code == 404
        assert resp.json() == {"error": "User not found"}

    def test_update_profile_ignores_protected_fields(self, client):
        _register(client, "alice")
        resp = client.post(
            "/update-profile",
            json={"username": "alice", "updates": {"bio": "hi", "isAdmin": True}},
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["bio"] == "hi"
        assert resp.json()["user"]["isAdmin"] is False

    def test_update_online(self, client):
        _register(client, "alice")
        client.post("/update-online", json={"username": "alice", "isOnline": False})
        assert client.get("/get-user/alice").json()["user"]["isOnline"] is False

    def test_follow_notifies_and_unfollow(self, client):
        _register(client, "alice")
        _register(client, "bob")
        assert client.post("/follow", json={"follower": "bob", "following": "alice"}).status_code == 200

        alice = client.get("/get-user/alice").json()["user"]
        assert alice["followers"] == ["bob"]
        (note,) = client.get("/get-notifications/alice").json()["notifications"]
        assert note["type"] == "follow"
        assert note["from"] == "bob"

        client.post("/unfollow", json={"follower": "bob", "following": "alice"})
        assert client.get("/get-user/alice").json()["user"]["followers"] == []
        assert client.get("/get-user/bob").json()["user"]["following"] == []

    def test_self_follow_is_400(self, client):
        _register(client, "alice")
        resp = client.post("/follow", json={"follower": "alice", "following": "alice"})
        assert resp.status_code == 400


# ===========================================================================
# Posts
# ===========================================================================
class TestPostRoutes:
    def test_feed_newest_first(self, client):
        _register(client, "alice")
        first = _create_post(client, "alice", "first")
        second = _create_post(client, "alice", "second")
        ids = [p["id"] for p in client.get("/get-posts").json()["posts"]]
        assert set(ids) == {first["id"], second["id"]}
        user_posts = client.get("/get-user-posts/alice").json()["posts"]
        assert len(user_posts) == 2

    def test_create_post_unknown_author_is_404(self, client):
        resp = client.post("/create-post", json={"username": "ghost", "content": "x"})
        assert resp.status_code == 404

    def test_like_notifies_author(self, client):
        _register(client, "alice")
        _register(client, "bob")
        post = _create_post(client, "alice")

        resp = client.post("/like-post", json={"postId": post["id"], "username": "bob"})
        assert resp.json()["post"]["likes"] == ["bob"]
        # Second like is idempotent
        resp = client.post("/like-post", json={"postId": post["id"], "username": "bob"})
        assert resp.json()["post"]["likes"] == ["bob"]

        notes = client.get("/get-notifications/alice").json()["notifications"]
        assert len(notes) == 1
        assert notes[0]["type"] == "like"
        assert notes[0]["from"] == "bob"
        assert notes[0]["postId"] == post["id"]

        resp = client.post("/unlike-post", json={"postId": post["id"], "username": "bob"})
        assert resp.json()["post"]["likes"] == []

    def test_like_missing_post_is_404(self, client):
        _register(client, "bob")
        resp = client.post("/like-post", json={"postId": "nope", "username": "bob"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Post not found"}

    def test_add_comment_is_silent_comment_post_notifies(self, client):
        _register(client, "alice")
        _register(client, "bob")
        post = _create_post(client, "alice")

        client.post("/add-comment", json={"postId": post["id"], "username": "bob", "content": "a"})
        assert client.get("/get-notifications/alice").json()["notifications"] == []

        resp = client.post(
            "/comment-post", json={"postId": post["id"], "username": "bob", "content": "b"}
        )
        assert [c["content"] for c in resp.json()["post"]["comments"]] == ["a", "b"]
        (note,) = client.get("/get-notifications/alice").json()["notifications"]
        assert note["type"] == "comment"

    def test_delete_post_by_stranger_is_403(self, client):
        _register(client, "alice")
        _register(client, "bob")
        post = _create_post(client, "alice")

        resp = client.post("/delete-post", json={"postId": post["id"], "username": "bob"})
        assert resp.status_code == 403
        assert "error" in resp.json()

        resp = client.post("/delete-post", json={"postId": post["id"], "username": "alice"})
        assert resp.json() == {"success": True}
        assert client.get("/get-posts").json()["posts"] == []
        assert client.get("/get-user/alice").json()["user"]["posts"] == []

    def test_admin_can_delete_any_post(self, client, admin):
        _register(client, "alice")
        post = _create_post(client, "alice")
        resp = client.post("/delete-post", json={"postId": post["id"], "username": admin})
        assert resp.status_code == 200


# ===========================================================================
# Clips, tracks & uploads
# ===========================================================================
class TestMediaRoutes:
    def test_clip_like_toggles(self, client):
        _register(client, "alice")
        clip = client.post(
            "/create-clip", json={"username": "alice", "videoUrl": "data:video/mp4;base64,AA"}
        ).json()["clip"]
        assert clip["views"] == 0

        liked = client.post("/like-clip", json={"clipId": clip["id"], "username": "alice"})
        assert liked.json()["clip"]["likes"] == ["alice"]
        unliked = client.post("/like-clip", json={"clipId": clip["id"], "username": "alice"})
        assert unliked.json()["clip"]["likes"] == []

    def test_track_defaults_and_delete(self, client):
        _register(client, "alice")
        track = client.post(
            "/upload-track", json={"username": "alice", "title": "Song", "audioUrl": "u"}
        ).json()["track"]
        assert track["artist"] == "alice"
        assert track["plays"] == 0
        assert len(client.get("/get-tracks").json()["tracks"]) == 1

        resp = client.post("/delete-track", json={"trackId": track["id"], "username": "alice"})
        assert resp.status_code == 200
        assert client.get("/get-tracks").json()["tracks"] == []

    def test_upload_returns_data_url(self, client):
        resp = client.post(
            "/upload",
            files={"file": ("a.png", b"\x89PNG" * 256, "image/png")},
            data={"username": "alice", "type": "avatar"},
        )
        assert resp.status_code == 200
        assert resp.json()["url"].startswith("data:image/png;base64,")

    def test_upload_too_large_is_400(self, client):
        resp = client.post(
            "/upload",
            files={"file": ("big.bin", b"\x00" * (6 * 1024 * 1024), "application/octet-stream")},
            data={"username": "alice", "type": "clip"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("File too large")

    def test_upload_without_file_is_400(self, client):
        resp = client.post("/upload", data={"username": "alice", "type": "avatar"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "File not found"}


# ===========================================================================
# Search
# ===========================================================================
class TestSearchRoute:
    def test_search(self, client):
        _register(client, "alice")
        _register(client, "bob")
        _create_post(client, "bob", "Alice in wonderland")
        data = client.get("/search", params={"q": "ALI"}).json()
        assert [u["username"] for u in data["users"]] == ["alice"]
        assert len(data["posts"]) == 1


# ===========================================================================
# Admin
# ===========================================================================
class TestAdminRoutes:
    def test_non_admin_is_403(self, client):
        _register(client, "alice")
        _register(client, "bob")
        resp = client.post(
            "/admin/verify-user", json={"adminUsername": "bob", "targetUsername": "alice"}
        )
        assert resp.status_code == 403
        assert resp.json() == {"error": "Administrator rights required"}

        assert client.get("/admin/stats", params={"adminUsername": "bob"}).status_code == 403
        assert client.get("/admin/stats").status_code == 403

    def test_admin_verify_stats_broadcast_delete(self, client, admin):
        _register(client, "alice")

        resp = client.post(
            "/admin/verify-user", json={"adminUsername": admin, "targetUsername": "alice"}
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["isVerified"] is True

        stats = client.get("/admin/stats", params={"adminUsername": admin}).json()["stats"]
        assert stats["totalUsers"] == 2

        resp = client.post("/admin/broadcast", json={"adminUsername": admin, "message": "hi"})
        assert resp.json() == {"success": True, "delivered": 2}
        (note,) = client.get("/get-notifications/alice").json()["notifications"]
        assert note["type"] == "system"

        resp = client.post(
            "/admin/delete-user", json={"adminUsername": admin, "targetUsername": "alice"}
        )
        assert resp.status_code == 200
        assert client.get("/get-user/alice").status_code == 404


# ===========================================================================
# Bearer-session enforcement
# ===========================================================================
class TestRequireAuth:
    @pytest.fixture
    def app_config(self):
        return dataclasses.replace(TEST_CONFIG, require_auth=True)

    def test_auth_routes_stay_open(self, client):
        _register(client, "alice")

    def test_missing_token_is_401(self, client):
        _register(client, "alice")
        resp = client.get("/get-user/alice")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Missing token"}

    def test_bad_token_is_401(self, client):
        resp = client.get("/get-posts", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid token"}

    def test_valid_token_passes(self, client):
        token = _register(client, "alice")["sessionToken"]
        resp = client.get("/get-user/alice", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200

    def test_token_cannot_act_as_another_user(self, client):
        bob_auth = {"Authorization": f"Bearer {_register(client, 'bob')['sessionToken']}"}
        alice_auth = {"Authorization": f"Bearer {_register(client, 'alice')['sessionToken']}"}
        post = client.post(
            "/create-post", json={"username": "bob", "content": "mine"}, headers=bob_auth
        ).json()["post"]

        resp = client.post(
            "/delete-post", json={"postId": post["id"], "username": "bob"}, headers=alice_auth
        )
        assert resp.status_code == 403
        assert resp.json() == {"error": "Session does not belong to this user"}
        assert len(client.get("/get-posts", headers=alice_auth).json()["posts"]) == 1

        resp = client.post(
            "/follow", json={"follower": "bob", "following": "alice"}, headers=alice_auth
        )
        assert resp.status_code == 403
        assert client.get("/get-notifications/bob", headers=alice_auth).status_code == 403

    def test_own_actions_pass(self, client):
        alice_auth = {"Authorization": f"Bearer {_register(client, 'alice')['sessionToken']}"}
        resp = client.post(
            "/create-post", json={"username": "alice", "content": "hi"}, headers=alice_auth
        )
        assert resp.status_code == 200
        post_id = resp.json()["post"]["id"]
        resp = client.post(
            "/delete-post", json={"postId": post_id, "username": "alice"}, headers=alice_auth
        )
        assert resp.status_code == 200
        assert client.get("/get-notifications/alice", headers=alice_auth).status_code == 200

    def test_admin_routes_check_acting_admin(self, client, admin):
        alice_auth = {"Authorization": f"Bearer {_register(client, 'alice')['sessionToken']}"}
        resp = client.post(
            "/admin/verify-user",
            json={"adminUsername": admin, "targetUsername": "alice"},
            headers=alice_auth,
        )
        assert resp.status_code == 403
        resp = client.get("/admin/stats", params={"adminUsername": admin}, headers=alice_auth)
        assert resp.status_code == 403

        login = client.post("/login", json={"username": admin, "password": "admin123"})
        admin_auth = {"Authorization": f"Bearer {login.json()['sessionToken']}"}
        resp = client.get("/admin/stats", params={"adminUsername": admin}, headers=admin_auth)
        assert resp.status_code == 200

    def test_upload_checks_form_username(self, client):
        alice_auth = {"Authorization": f"Bearer {_register(client, 'alice')['sessionToken']}"}
        resp = client.post(
            "/upload",
            files={"file": ("a.png", b"\x89PNG", "image/png")},
            data={"username": "bob", "type": "avatar"},
            headers=alice_auth,
        )
        assert resp.status_code == 403
