"""Notification engine: persist notifications and push them to live connections."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from socialnet.core.errors import NotFoundError
from socialnet.core.settings import settings
from socialnet.models import Group, Notification
from socialnet.schemas.notification import NotificationResponse
from socialnet.schemas.realtime import WsEnvelope
from socialnet.services.hub import RealtimeHub, get_hub

logger = logging.getLogger(__name__)

__all__ = [
    "emit",
    "emit_many",
    "list_unread",
    "mark_read",
    "mark_all_read",
    "to_response",
]


def to_response(notification: Notification, group_title: str | None = None) -> NotificationResponse:
    """Convert a Notification row into its API schema."""
    return NotificationResponse(
        id=notification.id,
        type=notification.type,
        content=notification.content,
        from_user_id=notification.from_user_id,
        group_id=notification.group_id,
        group_title=group_title,
        invitation_id=notification.invitation_id,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


def _group_title(db: Session, group_id: int | None) -> str | None:
    if group_id is None:
        return None
    group = db.get(Group, group_id)
    return group.title if group else None


async def emit(
    db: Session,
    to_user_id: int,
    type_: str,
    content: str,
    *,
    from_user_id: int | None = None,
    group_id: int | None = None,
    invitation_id: int | None = None,
    hub: RealtimeHub | None = None,
) -> Notification:
    """Insert an unread notification and push it to the user's live connections.

    The row is committed before the push; a failed push leaves the row in
    place for the next ``list_unread``.
    """
    notification = Notification(
        to_user_id=to_user_id,
        from_user_id=from_user_id,
        type=type_,
        content=content,
        group_id=group_id,
        invitation_id=invitation_id,
        is_read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    hub = hub or get_hub()
    payload = to_response(notification, _group_title(db, group_id)).model_dump(mode="json")
    envelope = WsEnvelope(type="notification", data=payload, group_id=group_id)
    await hub.send_to_users({to_user_id}, envelope)
    return notification


async def emit_many(
    db: Session,
    to_user_ids: list[int],
    type_: str,
    content: str,
    **kwargs,
) -> list[Notification]:
    """Emit the same notification to several users."""
    return [await emit(db, user_id, type_, content, **kwargs) for user_id in to_user_ids]


def list_unread(db: Session, user_id: int, limit: int | None = None) -> list[NotificationResponse]:
    """Return unread notifications for ``user_id``, newest first."""
    rows = (
        db.query(Notification, Group.title)
        .outerjoin(Group, Group.id == Notification.group_id)
        .filter(Notification.to_user_id == user_id, Notification.is_read.is_(False))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit or settings.notification_limit)
        .all()
    )
    return [to_response(notification, title) for notification, title in rows]


def mark_read(db: Session, notification_id: int, user_id: int) -> None:
    """Mark one of the caller's unread notifications as read.

    Raises:
        NotFoundError: If no unread notification with that id belongs to the caller.
    """
    updated = (
        db.query(Notification)
        .filter(
            Notification.id == notification_id,
            Notification.to_user_id == user_id,
            Notification.is_read.is_(False),
        )
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    if not updated:
        raise NotFoundError("Notification not found")


def mark_all_read(db: Session, user_id: int) -> int:
    """Mark every unread notification of the caller as read."""
    updated = (
        db.query(Notification)
        .filter(Notification.to_user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
