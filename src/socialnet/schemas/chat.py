"""Chat schemas; chat payloads use camelCase keys on the wire."""

import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that serializes with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DirectChatRequest(BaseModel):
    """Open a direct chat with ``userId``."""

    user_id: int = Field(..., validation_alias=AliasChoices("userId", "user_id"))


class SendMessageRequest(BaseModel):
    """Post a message to a chat."""

    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1)


class ChatMessageResponse(CamelModel):
    """Persisted chat message."""

    id: int
    chat_id: int
    sender_id: int
    recipient_id: int | None = None
    group_id: int | None = None
    content: str
    status: str
    message_type: str
    created_at: datetime.datetime
    sender_name: str | None = None
    sender_avatar: str | None = None


class ChatResponse(CamelModel):
    """Chat handle."""

    id: int
    type: str
    group_id: int | None = None
    created_at: datetime.datetime


class ParticipantResponse(CamelModel):
    """Chat participant."""

    id: int
    username: str
    first_name: str
    last_name: str
    avatar: str | None = None


class ChatSummary(CamelModel):
    """Entry in the caller's chat list."""

    id: int
    type: str
    group_id: int | None = None
    name: str
    avatar: str | None = None
    other_user_id: int | None = None
    last_message: str | None = None
    last_message_time: datetime.datetime | None = None
    unread_count: int = 0


class DirectChatResponse(CamelModel):
    """Result of opening a direct chat."""

    chat_id: int
    other_user_id: int
    created: bool
