"""Directed follow graph with pending/accepted/rejected edges."""

from __future__ import annotations

import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from socialnet.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from socialnet.models import Follower, User
from socialnet.models.follow import FOLLOW_ACCEPTED, FOLLOW_PENDING, FOLLOW_REJECTED
from socialnet.services import notifications
from socialnet.services.hub import RealtimeHub

logger = logging.getLogger(__name__)

STATUS_NONE = "none"

# Accepted spellings for respond(); compared after lower-casing.
_RESPONSES = {
    "accept": FOLLOW_ACCEPTED,
    "accepted": FOLLOW_ACCEPTED,
    "reject": FOLLOW_REJECTED,
    "rejected": FOLLOW_REJECTED,
}

__all__ = [
    "get_edge",
    "request",
    "respond",
    "unfollow",
    "status",
    "is_following",
    "followers_of",
    "following_of",
    "pending_requests",
    "contacts",
    "mutual_or_following",
    "accept_all_pending",
]


def get_edge(db: Session, follower_id: int, followed_id: int) -> Follower | None:
    """Return the edge for the ordered pair, if any."""
    return (
        db.query(Follower)
        .filter(Follower.follower_id == follower_id, Follower.followed_id == followed_id)
        .first()
    )


async def _notify_new_edge(
    db: Session, edge: Follower, follower: User, hub: RealtimeHub | None
) -> None:
    if edge.status == FOLLOW_PENDING:
        await notifications.emit(
            db,
            edge.followed_id,
            "follow_request",
            f"{follower.username} wants to follow you",
            from_user_id=follower.id,
            hub=hub,
        )
    else:
        await notifications.emit(
            db,
            edge.followed_id,
            "new_follower",
            f"{follower.username} started following you",
            from_user_id=follower.id,
            hub=hub,
        )


async def request(
    db: Session, follower_id: int, followed_id: int, *, hub: RealtimeHub | None = None
) -> Follower:
    """Create (or return) the follow edge from ``follower_id`` to ``followed_id``.

    The edge starts ``pending`` for private targets and ``accepted`` for public
    ones. Requesting again while pending or accepted returns the existing edge
    unchanged; a rejected edge is reopened.

    Raises:
        InvalidInputError: If a user tries to follow themself.
        NotFoundError: If either user does not exist.
    """
    if follower_id == followed_id:
        raise InvalidInputError("You cannot follow yourself")
    followed = db.get(User, followed_id)
    if followed is None:
        raise NotFoundError("User you are trying to follow does not exist")
    follower = db.get(User, follower_id)
    if follower is None:
        raise NotFoundError("User does not exist")

    initial = FOLLOW_PENDING if followed.is_private else FOLLOW_ACCEPTED
    edge = get_edge(db, follower_id, followed_id)
    if edge is not None:
        if edge.status != FOLLOW_REJECTED:
            return edge
        edge.status = initial
        db.commit()
    else:
        edge = Follower(follower_id=follower_id, followed_id=followed_id, status=initial)
        db.add(edge)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request inserted the same pair first.
            db.rollback()
            existing = get_edge(db, follower_id, followed_id)
            if existing is None:
                raise
            return existing
    db.refresh(edge)
    logger.info("Follow %s -> %s is %s", follower_id, followed_id, edge.status)
    await _notify_new_edge(db, edge, follower, hub)
    return edge


async def respond(
    db: Session,
    edge_id: int,
    action: str,
    responder_id: int,
    *,
    hub: RealtimeHub | None = None,
) -> Follower:
    """Accept or reject a pending request addressed to ``responder_id``.

    Raises:
        InvalidInputError: If ``action`` is not accept/reject.
        NotFoundError: If the edge does not exist.
        ForbiddenError: If the responder is not the followed user.
        ConflictError: If the edge is not pending.
    """
    new_status = _RESPONSES.get((action or "").strip().lower())
    if new_status is None:
        raise InvalidInputError("Invalid status type")

    edge = db.get(Follower, edge_id)
    if edge is None:
        raise NotFoundError("Follow request not found")
    if edge.followed_id != responder_id:
        raise ForbiddenError("You can only respond to requests sent to you")

    updated = (
        db.query(Follower)
        .filter(Follower.id == edge_id, Follower.status == FOLLOW_PENDING)
        .update({Follower.status: new_status}, synchronize_session=False)
    )
    db.commit()
    if not updated:
        raise ConflictError("Follow request already processed")
    db.refresh(edge)

    if new_status == FOLLOW_ACCEPTED:
        responder = db.get(User, responder_id)
        await notifications.emit(
            db,
            edge.follower_id,
            "follow_accepted",
            f"{responder.username} accepted your follow request",
            from_user_id=responder_id,
            hub=hub,
        )
    return edge


def unfollow(db: Session, follower_id: int, followed_id: int) -> None:
    """Remove the edge regardless of its status.

    Raises:
        NotFoundError: If no edge exists.
    """
    deleted = (
        db.query(Follower)
        .filter(Follower.follower_id == follower_id, Follower.followed_id == followed_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise NotFoundError("You are not following this user")


def status(db: Session, follower_id: int, followed_id: int) -> tuple[str, int | None]:
    """Return ``(status, edge_id)`` for the ordered pair; ``("none", None)`` without an edge."""
    edge = get_edge(db, follower_id, followed_id)
    if edge is None:
        return STATUS_NONE, None
    return edge.status, edge.id


def is_following(db: Session, follower_id: int, followed_id: int) -> bool:
    """Return True if an accepted edge exists from follower to followed."""
    return (
        db.query(Follower.id)
        .filter(
            Follower.follower_id == follower_id,
            Follower.followed_id == followed_id,
            Follower.status == FOLLOW_ACCEPTED,
        )
        .first()
        is not None
    )


def followers_of(db: Session, user_id: int) -> list[User]:
    """Users with an accepted edge toward ``user_id``."""
    return (
        db.query(User)
        .join(Follower, Follower.follower_id == User.id)
        .filter(Follower.followed_id == user_id, Follower.status == FOLLOW_ACCEPTED)
        .order_by(User.username)
        .all()
    )


def following_of(db: Session, user_id: int) -> list[User]:
    """Users that ``user_id`` follows with an accepted edge."""
    return (
        db.query(User)
        .join(Follower, Follower.followed_id == User.id)
        .filter(Follower.follower_id == user_id, Follower.status == FOLLOW_ACCEPTED)
        .order_by(User.username)
        .all()
    )


def pending_requests(db: Session, user_id: int) -> list[tuple[Follower, User]]:
    """Pending incoming requests for ``user_id`` with the requesting users."""
    return (
        db.query(Follower, User)
        .join(User, Follower.follower_id == User.id)
        .filter(Follower.followed_id == user_id, Follower.status == FOLLOW_PENDING)
        .order_by(Follower.created_at.desc(), Follower.id.desc())
        .all()
    )


def contacts(db: Session, user_id: int) -> list[User]:
    """Users connected to ``user_id`` by an accepted edge in either direction."""
    outgoing = db.query(Follower.followed_id).filter(
        Follower.follower_id == user_id, Follower.status == FOLLOW_ACCEPTED
    )
    incoming = db.query(Follower.follower_id).filter(
        Follower.followed_id == user_id, Follower.status == FOLLOW_ACCEPTED
    )
    return (
        db.query(User)
        .filter(or_(User.id.in_(outgoing), User.id.in_(incoming)))
        .order_by(User.username)
        .all()
    )


def mutual_or_following(db: Session, a: int, b: int) -> bool:
    """Return True iff an accepted edge exists between ``a`` and ``b`` in either direction."""
    return (
        db.query(Follower.id)
        .filter(
            Follower.status == FOLLOW_ACCEPTED,
            or_(
                and_(Follower.follower_id == a, Follower.followed_id == b),
                and_(Follower.follower_id == b, Follower.followed_id == a),
            ),
        )
        .first()
        is not None
    )


def accept_all_pending(db: Session, user_id: int) -> int:
    """Accept every pending request addressed to ``user_id``."""
    updated = (
        db.query(Follower)
        .filter(Follower.followed_id == user_id, Follower.status == FOLLOW_PENDING)
        .update({Follower.status: FOLLOW_ACCEPTED}, synchronize_session=False)
    )
    db.commit()
    return updated

