"""Shared API dependencies: database session, session cookie gate and hub."""

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from socialnet.core.settings import settings
from socialnet.db.session import get_db, get_session_factory
from socialnet.models import User
from socialnet.services.hub import RealtimeHub, get_hub
from socialnet.services.sessions import SessionStore, get_session_store
from socialnet.services.users import get_by_username

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
SessionFactoryDep = Annotated[Callable[[], AbstractContextManager[Session]], Depends(get_session_factory)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
HubDep = Annotated[RealtimeHub, Depends(get_hub)]

UNAUTHENTICATED = "Unauthenticated user"
UNAUTHORIZED = "Unauthorized user"


def get_session_token(request: Request) -> str | None:
    """Return the session token from the request cookie, if any."""
    return request.cookies.get(settings.session_cookie_name) or None


def resolve_user(db: Session, store: SessionStore, token: str | None) -> User | None:
    """Resolve a session token to its user; None when the session is not live."""
    username = store.lookup(token)
    if username is None:
        return None
    return get_by_username(db, username)


def get_current_username(request: Request, store: SessionStoreDep) -> str:
    """Authorization gate: resolve the caller's username from the session cookie.

    Raises:
        HTTPException: 401 when the cookie is missing or the token is unknown.
    """
    token = get_session_token(request)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHENTICATED)
    username = store.lookup(token)
    if username is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)
    return username


def get_current_user(
    username: Annotated[str, Depends(get_current_username)],
    db: SessionDep,
) -> User:
    """Return the User behind the caller's session."""
    user = get_by_username(db, username)
    if user is None:
        # The account disappeared while the session was alive.
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
