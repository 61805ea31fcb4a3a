"""Chat endpoints: direct chats, chat list, history and sending."""

from __future__ import annotations

from fastapi import APIRouter, Query

from socialnet.api.dependencies import CurrentUserDep, HubDep, SessionDep
from socialnet.schemas.chat import (
    ChatMessageResponse,
    ChatSummary,
    DirectChatRequest,
    DirectChatResponse,
    ParticipantResponse,
    SendMessageRequest,
)
from socialnet.services import chat

router = APIRouter(tags=["chat"])


@router.post("/chat/direct", response_model=DirectChatResponse)
async def create_direct_chat(
    payload: DirectChatRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> DirectChatResponse:
    """Return the direct chat with ``userId``, creating it when allowed."""
    direct, created = chat.create_or_get_direct(db, current_user.id, payload.user_id)
    return DirectChatResponse(chat_id=direct.id, other_user_id=payload.user_id, created=created)


@router.get("/chats", response_model=list[ChatSummary])
async def list_chats(current_user: CurrentUserDep, db: SessionDep) -> list[ChatSummary]:
    """The caller's chats, most recent activity first."""
    return chat.list_chats(db, current_user.id)


@router.get("/chat/{chat_id}/participants", response_model=list[ParticipantResponse])
async def list_participants(chat_id: int, current_user: CurrentUserDep, db: SessionDep) -> list[ParticipantResponse]:
    """Participants of a chat the caller belongs to."""
    return [
        ParticipantResponse(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar=user.avatar,
        )
        for user in chat.participants(db, chat_id, current_user.id)
    ]


@router.get("/chat/{chat_id}/messages", response_model=list[ChatMessageResponse])
async def get_messages(
    chat_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int | None = Query(None, ge=1, le=200),
    before: int | None = Query(None),
) -> list[ChatMessageResponse]:
    """A page of chat history, oldest first."""
    return chat.history(db, chat_id, current_user.id, limit=limit, before=before)


@router.post("/chat/{chat_id}/messages", response_model=ChatMessageResponse)
async def send_message(
    chat_id: int,
    payload: SendMessageRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> ChatMessageResponse:
    """Send a message; live participants receive it immediately."""
    return await chat.send(db, chat_id, current_user.id, payload.content, hub=hub)


@router.post("/chat/{chat_id}/read")
async def mark_read(chat_id: int, current_user: CurrentUserDep, db: SessionDep) -> dict[str, int]:
    """Mark messages from others in this chat as read."""
    return {"updated": chat.mark_read(db, chat_id, current_user.id)}


@router.get("/messages/{user_id}/{contact_id}", response_model=list[ChatMessageResponse])
async def direct_history(
    user_id: int,
    contact_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[ChatMessageResponse]:
    """Direct history between the caller and a contact."""
    return chat.direct_history(db, user_id, contact_id, current_user.id)
