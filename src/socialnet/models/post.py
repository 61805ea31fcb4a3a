# src/socialnet/models/post.py
"""SQLAlchemy models for posts, their explicit viewers and comments."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from socialnet.db.session import Base
from socialnet.db.time import utcnow

PRIVACY_PUBLIC = 1
PRIVACY_FOLLOWERS = 2
PRIVACY_PRIVATE = 3
PRIVACY_LEVELS = (PRIVACY_PUBLIC, PRIVACY_FOLLOWERS, PRIVACY_PRIVATE)


class Post(Base):
    """A post on a user's timeline or inside a group feed."""

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    media: Mapped[str | None] = mapped_column(Text, nullable=True)
    privacy: Mapped[int] = mapped_column(Integer, nullable=False, default=PRIVACY_PUBLIC)
    group_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class PostPrivateView(Base):
    """Grant allowing ``user_id`` to read a private post."""

    __tablename__ = "post_private_views"

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )


class Comment(Base):
    """Comment attached to a post; visibility follows the parent post."""

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    media: Mapped[str | None] = mapped_column(Text, nullable=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
