"""In-memory session store and the session cookie.

Sessions live for the lifetime of the process. A multi-process deployment
would need to move the token map to an external key-value store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from fastapi import Response
from uuid6 import uuid7

from socialnet.core.locks import ReadWriteLock
from socialnet.core.settings import settings

logger = logging.getLogger(__name__)


class SessionIssueError(RuntimeError):
    """Raised when a session token cannot be generated."""


def new_token() -> str:
    """Return a time-ordered (version 7) UUID string."""
    return str(uuid7())


@dataclass(frozen=True)
class SessionRecord:
    """A live session bound to a username."""

    username: str
    issued_at: float


class SessionStore:
    """Process-wide mapping from session token to username.

    Lookups take the lock in shared mode; issuance and removal take it
    exclusively.
    """

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds
        self._lock = ReadWriteLock()
        self._sessions: dict[str, SessionRecord] = {}

    def issue(self, username: str) -> str:
        """Create a session for ``username`` and return its token."""
        try:
            token = new_token()
        except Exception as exc:
            raise SessionIssueError("Failed to generate session token") from exc
        with self._lock.write():
            if token in self._sessions:
                raise SessionIssueError("Session token collision")
            self._sessions[token] = SessionRecord(username=username, issued_at=time.time())
        logger.debug("Issued session for %s", username)
        return token

    def lookup(self, token: str | None) -> str | None:
        """Return the username bound to ``token``, or None if there is no live session."""
        if not token:
            return None
        with self._lock.read():
            record = self._sessions.get(token)
        if record is None:
            return None
        if time.time() - record.issued_at >= self._ttl:
            self.destroy(token)
            return None
        return record.username

    def destroy(self, token: str | None) -> bool:
        """Remove ``token``; returns True if a session was removed."""
        if not token:
            return False
        with self._lock.write():
            return self._sessions.pop(token, None) is not None

    def destroy_user(self, username: str) -> int:
        """Remove every session bound to ``username``."""
        with self._lock.write():
            tokens = [t for t, rec in self._sessions.items() if rec.username == username]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sessions)


def set_session_cookie(response: Response, token: str) -> None:
    """Attach the session cookie to ``response``."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie on the client."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        max_age=-1,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
    )


_session_store = SessionStore()


def get_session_store() -> SessionStore:
    """Return the shared session store."""
    return _session_store
