"""Notification endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from socialnet.api.dependencies import CurrentUserDep, SessionDep
from socialnet.schemas.notification import NotificationResponse
from socialnet.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(current_user: CurrentUserDep, db: SessionDep) -> list[NotificationResponse]:
    """Unread notifications for the caller, newest first."""
    return notifications.list_unread(db, current_user.id)


@router.post("/read-all")
async def mark_all_read(current_user: CurrentUserDep, db: SessionDep) -> dict[str, int]:
    """Mark every unread notification as read."""
    return {"updated": notifications.mark_all_read(db, current_user.id)}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: int, current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Mark one of the caller's notifications as read."""
    notifications.mark_read(db, notification_id, current_user.id)
    return {"message": "Notification marked as read"}
