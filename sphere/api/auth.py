"""
sphere.api.auth — Registration, Login & Sessions
=================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sphere.api.deps import get_identity
from sphere.services.identity_service import IdentityService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RegisterBody(BaseModel):
    username: str
    password: str
    email: str
    firstName: str | None = None
    lastName: str | None = None
    avatar: str | None = None
    banner: str | None = None


class LoginBody(BaseModel):
    username: str
    password: str


class SessionBody(BaseModel):
    sessionToken: str
    username: str


class LogoutBody(BaseModel):
    sessionToken: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/register")
async def register(body: RegisterBody, identity: IdentityService = Depends(get_identity)):
    user, token = await identity.register(
        body.username,
        body.password,
        body.email,
        first_name=body.firstName,
        last_name=body.lastName,
        avatar=body.avatar,
        banner=body.banner,
    )
    return {"user": user, "sessionToken": token}


@router.post("/login")
async def login(body: LoginBody, identity: IdentityService = Depends(get_identity)):
    user, token = await identity.login(body.username, body.password)
    return {"user": user, "sessionToken": token}


@router.post("/verify-session")
async def verify_session(body: SessionBody, identity: IdentityService = Depends(get_identity)):
    valid, user = await identity.verify_session(body.sessionToken, body.username)
    if not valid:
        return JSONResponse({"valid": False}, status_code=401)
    return {"valid": True, "user": user}


@router.post("/logout")
async def logout(body: LogoutBody, identity: IdentityService = Depends(get_identity)):
    """Revoke a session token.  Unknown tokens are accepted silently."""
    await identity.logout(body.sessionToken)
    return {"success": True}
