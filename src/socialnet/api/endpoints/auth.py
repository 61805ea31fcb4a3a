"""Registration, login and logout endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

from socialnet.api.dependencies import SessionDep, SessionStoreDep, get_session_token
from socialnet.schemas.user import AuthResponse, LoginRequest, RegisterRequest
from socialnet.services import users
from socialnet.services.sessions import clear_session_cookie, set_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=AuthResponse)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: SessionDep,
    store: SessionStoreDep,
) -> AuthResponse:
    """Create an account and start a session."""
    user = users.create_user(db, payload)
    set_session_cookie(response, store.issue(user.username))
    return AuthResponse(id=user.id, username=user.username)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    db: SessionDep,
    store: SessionStoreDep,
) -> AuthResponse:
    """Verify credentials and start a session."""
    user = users.authenticate(db, payload.login_name, payload.password)
    set_session_cookie(response, store.issue(user.username))
    logger.info("User %s logged in", user.username)
    return AuthResponse(id=user.id, username=user.username)


@router.post("/logout")
async def logout(request: Request, response: Response, store: SessionStoreDep) -> dict[str, str]:
    """Destroy the caller's session, if any, and expire the cookie."""
    store.destroy(get_session_token(request))
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}
