"""
sphere.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn sphere.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv()

from sphere.api.auth import router as auth_router  # noqa: E402
from sphere.api.deps import get_config, get_engine, get_kv  # noqa: E402
from sphere.api.routes.admin import router as admin_router  # noqa: E402
from sphere.api.routes.media import router as media_router  # noqa: E402
from sphere.api.routes.posts import router as posts_router  # noqa: E402
from sphere.api.routes.public import router as public_router  # noqa: E402
from sphere.api.routes.users import router as users_router  # noqa: E402
from sphere.database.engine import init_db  # noqa: E402
from sphere.database.seed import seed_admin  # noqa: E402
from sphere.errors import RateLimited, SphereError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated, ``*`` allowed)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: create the KV table and seed the admin."""
    engine = get_engine()
    cfg = get_config()
    init_db(engine)
    await seed_admin(get_kv(engine, cfg), cfg)
    logger.info("Sphere API started (%s)", engine.url.get_backend_name())
    yield
    logger.info("Sphere API shutting down")


app = FastAPI(
    title="Sphere API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


# ---------------------------------------------------------------------------
# Error rendering: every failure is ``{"error": "<message>"}``
# ---------------------------------------------------------------------------
@app.exception_handler(SphereError)
async def sphere_error_handler(request: Request, exc: SphereError):
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after_minutes * 60)}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    return JSONResponse({"error": f"Invalid request: {problems}"}, status_code=400)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# Mount routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(posts_router)
app.include_router(media_router)
app.include_router(public_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok"}
