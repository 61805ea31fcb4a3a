# src/socialnet/models/follow.py
"""SQLAlchemy model for the directed follow relation."""

from __future__ import annotations

import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from socialnet.db.session import Base
from socialnet.db.time import utcnow

FOLLOW_PENDING = "pending"
FOLLOW_ACCEPTED = "accepted"
FOLLOW_REJECTED = "rejected"


class Follower(Base):
    """Follow edge from ``follower_id`` to ``followed_id``.

    At most one edge exists per ordered pair; re-requesting reuses the row.
    """

    __tablename__ = "followers"
    __table_args__ = (
        UniqueConstraint("follower_id", "followed_id", name="uq_followers_pair"),
        CheckConstraint("follower_id <> followed_id", name="ck_followers_not_self"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    follower_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    followed_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=FOLLOW_PENDING)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
