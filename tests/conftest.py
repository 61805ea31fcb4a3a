# tests/conftest.py
from __future__ import annotations

import asyncio
import datetime
import os
from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

from socialnet.core.security import hash_password
from socialnet.core.settings import settings
from socialnet.db.session import Base
from socialnet.db.session import get_db as app_get_session
from socialnet.db.session import get_session_factory as app_get_session_factory
from socialnet.main import app as fastapi_app
from socialnet.models import Follower, User
from socialnet.models.follow import FOLLOW_ACCEPTED
from socialnet.services.hub import RealtimeHub, get_hub
from socialnet.services.sessions import SessionStore, get_session_store

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "password123"

# bcrypt is deliberately slow; hash the shared test password once.
_PASSWORD_HASH = hash_password(TEST_PASSWORD)
_USER_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside the test transaction.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    # Commits and rollbacks inside services only touch a savepoint.
    SessionLocal = sessionmaker(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
    )
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    @contextmanager
    def _session_scope_override() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[app_get_session_factory] = lambda: _session_scope_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(app_get_session_factory, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def reset_realtime_hub() -> Iterator[None]:
    """Drop any connection a test left registered on the process-wide hub."""
    yield
    shared = get_hub()
    if shared.connection_count():
        asyncio.run(shared.close_all())


@pytest.fixture()
def session_store() -> SessionStore:
    """The process-wide store used by the authorization gate."""
    return get_session_store()


@pytest.fixture()
def hub() -> RealtimeHub:
    """A private hub with a short write deadline."""
    return RealtimeHub(write_timeout=0.2)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory creating users directly in the database."""

    def _make_user(username: str | None = None, *, is_private: bool = False, **fields) -> User:
        n = next(_USER_COUNTER)
        username = username or f"user{n}"
        user = User(
            username=username,
            email=fields.pop("email", f"{username}@example.com"),
            password=_PASSWORD_HASH,
            first_name=fields.pop("first_name", username.capitalize()),
            last_name=fields.pop("last_name", "Tester"),
            date_of_birth=fields.pop("date_of_birth", datetime.date(1990, 1, 1)),
            avatar=fields.pop("avatar", None),
            about_me=fields.pop("about_me", None),
            is_private=is_private,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def follow(db_session: Session) -> Callable[..., Follower]:
    """Factory creating a follow edge (accepted by default)."""

    def _follow(follower: User, followed: User, status: str = FOLLOW_ACCEPTED) -> Follower:
        edge = Follower(follower_id=follower.id, followed_id=followed.id, status=status)
        db_session.add(edge)
        db_session.commit()
        db_session.refresh(edge)
        return edge

    return _follow


@pytest.fixture()
def auth_headers(session_store: SessionStore) -> Callable[[User], dict[str, str]]:
    """Issue a real session for a user and return the Cookie header carrying it.

    The session cookie is Secure, so the test client's cookie jar will not
    replay it over plain http; tests send it explicitly instead.
    """

    def _auth_headers(user: User) -> dict[str, str]:
        token = session_store.issue(user.username)
        return {"Cookie": f"{settings.session_cookie_name}={token}"}

    return _auth_headers


@pytest.fixture()
def alice(make_user) -> User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user) -> User:
    return make_user("bob")


@pytest.fixture()
def carol(make_user) -> User:
    return make_user("carol", is_private=True)
