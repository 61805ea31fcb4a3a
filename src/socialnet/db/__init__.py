"""Database package exports."""

from .session import Base, SessionLocal, engine, get_db, get_session_factory, session_scope

__all__ = ["Base", "SessionLocal", "engine", "get_db", "get_session_factory", "session_scope"]
