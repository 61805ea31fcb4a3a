"""Account, profile and directory helpers."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from socialnet.core import security
from socialnet.core.errors import ConflictError, ForbiddenError, NotFoundError, UnauthenticatedError
from socialnet.models import Follower, User
from socialnet.schemas.user import (
    ExploreEntry,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
    UserSummary,
)
from socialnet.services import follow_graph

logger = logging.getLogger(__name__)

__all__ = [
    "get_user",
    "require_user",
    "get_by_username",
    "create_user",
    "authenticate",
    "update_profile",
    "can_see_profile",
    "profile_view",
    "explore",
    "contacts_for",
]


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def require_user(db: Session, user_id: int) -> User:
    """Return a user or raise NotFoundError."""
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_by_username(db: Session, username: str) -> User | None:
    """Return a user by exact username."""
    return db.query(User).filter(User.username == username).first()


def create_user(db: Session, data: RegisterRequest) -> User:
    """Persist a new user with a bcrypt-hashed password.

    Raises:
        ConflictError: If the username or e-mail is already taken.
    """
    existing = (
        db.query(User.id)
        .filter(or_(User.username == data.username, func.lower(User.email) == data.email.lower()))
        .first()
    )
    if existing is not None:
        raise ConflictError("User already exists")

    user = User(
        username=data.username,
        email=data.email,
        password=security.hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        date_of_birth=data.date_of_birth,
        avatar=data.avatar,
        about_me=data.about_me,
        is_private=data.is_private,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User already exists") from exc
    db.refresh(user)
    logger.info("Registered user %s (id=%s)", user.username, user.id)
    return user


def authenticate(db: Session, identifier: str | None, password: str) -> User:
    """Return the user matching ``identifier`` (username or e-mail) and ``password``.

    Raises:
        UnauthenticatedError: On unknown identifier or wrong password.
    """
    if not identifier:
        raise UnauthenticatedError("Invalid credentials")
    user = (
        db.query(User)
        .filter(or_(User.username == identifier, func.lower(User.email) == identifier.lower()))
        .first()
    )
    if user is None or not security.verify_password(password, user.password):
        raise UnauthenticatedError("Invalid credentials")
    return user


def update_profile(db: Session, user: User, data: ProfileUpdateRequest) -> User:
    """Apply partial profile updates.

    Turning a private account public accepts its pending follow requests.
    """
    update_dict = data.model_dump(exclude_unset=True, exclude_none=True)
    was_private = user.is_private
    for key, value in update_dict.items():
        setattr(user, key, value)
    db.add(user)
    db.commit()
    db.refresh(user)
    if was_private and not user.is_private:
        accepted = follow_graph.accept_all_pending(db, user.id)
        if accepted:
            logger.info("Accepted %d pending follow requests for %s", accepted, user.username)
    return user


def can_see_profile(db: Session, viewer_id: int, target: User) -> bool:
    """Personal fields of private accounts are limited to the owner and accepted followers."""
    if viewer_id == target.id or not target.is_private:
        return True
    return follow_graph.is_following(db, viewer_id, target.id)


def _public_fields(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        avatar=user.avatar,
        is_private=user.is_private,
    )


def profile_view(db: Session, viewer_id: int, target: User) -> ProfileResponse:
    """Build the profile page of ``target`` as seen by ``viewer_id``."""
    visible = can_see_profile(db, viewer_id, target)
    follow_status, _ = follow_graph.status(db, viewer_id, target.id)
    profile = ProfileResponse(
        user=UserResponse.model_validate(target) if visible else _public_fields(target),
        can_view=visible,
        follow_status=follow_status,
    )
    if visible:
        profile.followers = [UserSummary.model_validate(u) for u in follow_graph.followers_of(db, target.id)]
        profile.following = [UserSummary.model_validate(u) for u in follow_graph.following_of(db, target.id)]
    if viewer_id == target.id:
        profile.follow_requests = [
            UserSummary.model_validate(requester)
            for _, requester in follow_graph.pending_requests(db, target.id)
        ]
    return profile


def explore(db: Session, viewer_id: int, search: str = "") -> list[ExploreEntry]:
    """List every user except the viewer, optionally filtered by username prefix."""
    query = db.query(User).filter(User.id != viewer_id)
    search = (search or "").strip()
    if search:
        escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        query = query.filter(func.lower(User.username).like(f"{escaped.lower()}%", escape="\\"))
    users: Sequence[User] = query.order_by(User.username).all()

    statuses = dict(
        db.query(Follower.followed_id, Follower.status)
        .filter(Follower.follower_id == viewer_id)
        .all()
    )
    return [
        ExploreEntry(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar=user.avatar,
            is_private=user.is_private,
            follow_status=statuses.get(user.id, follow_graph.STATUS_NONE),
        )
        for user in users
    ]


def contacts_for(db: Session, viewer_id: int, user_id: int) -> list[User]:
    """Return contacts of ``user_id``; callers may only list their own."""
    if viewer_id != user_id:
        raise ForbiddenError("You can only view your own contacts")
    return follow_graph.contacts(db, user_id)
