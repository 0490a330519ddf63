"""
Sphere — Social Network Backend over a Key-Value Store
=======================================================
Accounts and sessions, posts, comments, likes and follows, short clips,
music tracks, notifications, search, admin tools and inline uploads, all
kept as JSON documents in a flat key-value store.

Package layout::

    sphere/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # KV key layout, ids, timestamps
    ├── errors.py          # Service error taxonomy → HTTP status
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # kv_store table
    │   ├── kv.py          # Async get / set / delete / prefix scan
    │   └── seed.py        # Default admin account
    ├── services/
    │   ├── identity_service.py      # Register, login, sessions, profiles
    │   ├── login_throttle.py        # Failed-login lockout
    │   ├── content_service.py       # Posts, clips, tracks, comments, follows
    │   ├── notification_service.py  # Fan-out + listing
    │   ├── search_service.py        # Substring search
    │   ├── admin_service.py         # Verify / delete users, stats, broadcast
    │   └── upload_service.py        # data: URL uploads
    └── api/
        ├── main.py        # FastAPI app + error rendering
        ├── deps.py        # Dependency wiring
        ├── auth.py        # /register, /login, /verify-session, /logout
        └── routes/        # users, posts, media, public, admin
"""

__version__ = "0.1.0"
