"""Notification schemas."""

import datetime

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    """Unread notification, joined with the group title when applicable."""

    id: int
    type: str
    content: str
    from_user_id: int | None = None
    group_id: int | None = None
    group_title: str | None = None
    invitation_id: int | None = None
    is_read: bool
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)
