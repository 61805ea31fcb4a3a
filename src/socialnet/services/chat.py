"""Chat subsystem: direct and group chats, history and message fan-out."""

from __future__ import annotations

import datetime
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from socialnet.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from socialnet.core.settings import settings
from socialnet.models import Chat, ChatMessage, ChatParticipant, Group, GroupMember, User
from socialnet.models.chat import CHAT_DIRECT, CHAT_GROUP, MESSAGE_DELIVERED, MESSAGE_READ
from socialnet.models.group import MEMBER_ACCEPTED
from socialnet.schemas.chat import ChatMessageResponse, ChatSummary
from socialnet.schemas.realtime import WsEnvelope
from socialnet.services import follow_graph, groups, notifications
from socialnet.services.hub import RealtimeHub, get_hub

logger = logging.getLogger(__name__)

NO_FOLLOW_RELATIONSHIP = "No follow relationship exists"

__all__ = [
    "get_chat",
    "participant_ids",
    "find_direct",
    "create_or_get_direct",
    "list_chats",
    "participants",
    "history",
    "direct_history",
    "send",
    "mark_read",
    "to_message_response",
]


def get_chat(db: Session, chat_id: int) -> Chat:
    """Return a chat or raise NotFoundError."""
    chat = db.get(Chat, chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    return chat


def participant_ids(db: Session, chat: Chat) -> list[int]:
    """Direct chats list their pair; group chats follow the group's accepted members."""
    if chat.type == CHAT_GROUP and chat.group_id is not None:
        return groups.accepted_member_ids(db, chat.group_id)
    rows = db.query(ChatParticipant.user_id).filter(ChatParticipant.chat_id == chat.id).all()
    return [user_id for (user_id,) in rows]


def _require_participant(db: Session, chat: Chat, user_id: int) -> list[int]:
    members = participant_ids(db, chat)
    if user_id not in members:
        raise ForbiddenError("You are not a participant of this chat")
    return members


def to_message_response(message: ChatMessage, sender: User | None, group_id: int | None = None) -> ChatMessageResponse:
    """Convert a stored message into its wire form."""
    return ChatMessageResponse(
        id=message.id,
        chat_id=message.chat_id,
        sender_id=message.sender_id,
        recipient_id=message.recipient_id,
        group_id=group_id,
        content=message.content,
        status=message.status,
        message_type=message.message_type,
        created_at=message.created_at,
        sender_name=sender.username if sender else None,
        sender_avatar=sender.avatar if sender else None,
    )


def direct_key(a: int, b: int) -> str:
    """Order-independent key identifying the direct chat of a pair."""
    low, high = sorted((a, b))
    return f"{low}:{high}"


def find_direct(db: Session, a: int, b: int) -> Chat | None:
    """Return the existing direct chat between ``a`` and ``b``, if any."""
    return db.query(Chat).filter(Chat.direct_key == direct_key(a, b)).first()


def create_or_get_direct(db: Session, a: int, b: int) -> tuple[Chat, bool]:
    """Return the direct chat between ``a`` and ``b``, creating it if needed.

    Requires an accepted follow in at least one direction.

    Returns:
        ``(chat, created)``.

    Raises:
        InvalidInputError: If ``a`` and ``b`` are the same user.
        NotFoundError: If ``b`` does not exist.
        ForbiddenError: If neither user follows the other.
    """
    if a == b:
        raise InvalidInputError("Cannot start a chat with yourself")
    if db.get(User, b) is None:
        raise NotFoundError("User not found")
    if not follow_graph.mutual_or_following(db, a, b):
        raise ForbiddenError(NO_FOLLOW_RELATIONSHIP)

    existing = find_direct(db, a, b)
    if existing is not None:
        return existing, False

    chat = Chat(type=CHAT_DIRECT, direct_key=direct_key(a, b))
    db.add(chat)
    try:
        db.flush()
        db.add_all([ChatParticipant(chat_id=chat.id, user_id=a), ChatParticipant(chat_id=chat.id, user_id=b)])
        db.commit()
    except IntegrityError:
        # A concurrent request created the chat for this pair first.
        db.rollback()
        existing = find_direct(db, a, b)
        if existing is None:
            raise
        return existing, False
    db.refresh(chat)
    logger.info("Direct chat %s created between %s and %s", chat.id, a, b)
    return chat, True


def _last_message(db: Session, chat_id: int) -> ChatMessage | None:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .first()
    )


def _unread_count(db: Session, chat_id: int, user_id: int) -> int:
    return (
        db.query(func.count(ChatMessage.id))
        .filter(
            ChatMessage.chat_id == chat_id,
            ChatMessage.sender_id != user_id,
            ChatMessage.status != MESSAGE_READ,
        )
        .scalar()
        or 0
    )


def list_chats(db: Session, user_id: int) -> list[ChatSummary]:
    """The caller's direct chats and the chats of groups they belong to.

    Sorted by most recent activity.
    """
    summaries: list[ChatSummary] = []

    direct_chats = (
        db.query(Chat)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .filter(ChatParticipant.user_id == user_id, Chat.type == CHAT_DIRECT)
        .all()
    )
    for chat in direct_chats:
        other = (
            db.query(User)
            .join(ChatParticipant, ChatParticipant.user_id == User.id)
            .filter(ChatParticipant.chat_id == chat.id, User.id != user_id)
            .first()
        )
        last = _last_message(db, chat.id)
        summaries.append(
            ChatSummary(
                id=chat.id,
                type=chat.type,
                name=other.username if other else "",
                avatar=other.avatar if other else None,
                other_user_id=other.id if other else None,
                last_message=last.content if last else None,
                last_message_time=last.created_at if last else chat.created_at,
                unread_count=_unread_count(db, chat.id, user_id),
            )
        )

    group_ids = db.query(GroupMember.group_id).filter(
        GroupMember.user_id == user_id,
        GroupMember.status == MEMBER_ACCEPTED,
    )
    group_rows = (
        db.query(Chat, Group)
        .join(Group, Group.id == Chat.group_id)
        .filter(Chat.type == CHAT_GROUP, Chat.group_id.in_(group_ids))
        .all()
    )
    for chat, group in group_rows:
        last = _last_message(db, chat.id)
        summaries.append(
            ChatSummary(
                id=chat.id,
                type=chat.type,
                group_id=group.id,
                name=group.title,
                last_message=last.content if last else None,
                last_message_time=last.created_at if last else chat.created_at,
                unread_count=_unread_count(db, chat.id, user_id),
            )
        )

    epoch = datetime.datetime.min
    summaries.sort(
        key=lambda s: (s.last_message_time or epoch).replace(tzinfo=None),
        reverse=True,
    )
    return summaries


def participants(db: Session, chat_id: int, viewer_id: int) -> list[User]:
    """Participants of a chat the viewer belongs to."""
    chat = get_chat(db, chat_id)
    members = _require_participant(db, chat, viewer_id)
    return db.query(User).filter(User.id.in_(members)).order_by(User.username).all()


def _page(db: Session, chat: Chat, limit: int | None, before: int | None) -> list[ChatMessageResponse]:
    size = min(limit or settings.message_page_size, settings.message_page_size * 4)
    query = (
        db.query(ChatMessage, User)
        .outerjoin(User, User.id == ChatMessage.sender_id)
        .filter(ChatMessage.chat_id == chat.id)
    )
    if before is not None:
        query = query.filter(ChatMessage.id < before)
    rows = query.order_by(ChatMessage.id.desc()).limit(size).all()
    return [to_message_response(message, sender, chat.group_id) for message, sender in reversed(rows)]


def history(
    db: Session,
    chat_id: int,
    viewer_id: int,
    *,
    limit: int | None = None,
    before: int | None = None,
) -> list[ChatMessageResponse]:
    """A page of messages, oldest first, ending just before message id ``before``."""
    chat = get_chat(db, chat_id)
    _require_participant(db, chat, viewer_id)
    return _page(db, chat, limit, before)


def direct_history(db: Session, user_id: int, contact_id: int, caller_id: int) -> list[ChatMessageResponse]:
    """Direct history between the caller and ``contact_id``; empty when no chat exists."""
    if caller_id != user_id:
        raise ForbiddenError("You can only read your own conversations")
    chat = find_direct(db, user_id, contact_id)
    if chat is None:
        return []
    return _page(db, chat, None, None)


async def send(
    db: Session,
    chat_id: int,
    sender_id: int,
    content: str,
    *,
    hub: RealtimeHub | None = None,
) -> ChatMessageResponse:
    """Persist a message, then publish it to the other participants.

    Direct messages go out as ``chat_message`` to the recipient; group
    messages go out as ``group_message`` to every accepted member except the
    sender. Recipients without a live connection get a notification instead.
    """
    content = (content or "").strip()
    if not content:
        raise InvalidInputError("Missing required field: content")
    chat = get_chat(db, chat_id)
    members = _require_participant(db, chat, sender_id)
    hub = hub or get_hub()

    recipient_id: int | None = None
    if chat.type == CHAT_DIRECT:
        others = [uid for uid in members if uid != sender_id]
        if not others:
            raise InvalidInputError("Chat has no recipient")
        recipient_id = others[0]
        if not follow_graph.mutual_or_following(db, sender_id, recipient_id):
            raise ForbiddenError(NO_FOLLOW_RELATIONSHIP)

    message = ChatMessage(
        chat_id=chat.id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    sender = db.get(User, sender_id)
    payload = to_message_response(message, sender, chat.group_id)
    if chat.type == CHAT_DIRECT:
        envelope = WsEnvelope(
            type="chat_message",
            data=payload.model_dump(mode="json", by_alias=True),
            room_id=chat.id,
        )
        targets = [recipient_id]
        offline_type = "new_message"
        offline_text = f"New message from {sender.username}"
    else:
        envelope = WsEnvelope(
            type="group_message",
            data=payload.model_dump(mode="json", by_alias=True),
            room_id=chat.id,
            group_id=chat.group_id,
        )
        targets = [uid for uid in members if uid != sender_id]
        offline_type = "group_message"
        group = db.get(Group, chat.group_id)
        offline_text = f"New message from {sender.username} in {group.title if group else 'a group'}"

    delivered = await hub.send_to_users(targets, envelope)

    if chat.type == CHAT_DIRECT and recipient_id in delivered:
        message.status = MESSAGE_DELIVERED
        db.commit()
        db.refresh(message)
        payload.status = message.status

    offline = [uid for uid in targets if uid not in delivered]
    if offline:
        await notifications.emit_many(
            db,
            offline,
            offline_type,
            offline_text,
            from_user_id=sender_id,
            group_id=chat.group_id,
            hub=hub,
        )
    return payload


def mark_read(db: Session, chat_id: int, user_id: int) -> int:
    """Mark messages sent by others in this chat as read."""
    chat = get_chat(db, chat_id)
    _require_participant(db, chat, user_id)
    updated = (
        db.query(ChatMessage)
        .filter(
            ChatMessage.chat_id == chat_id,
            ChatMessage.sender_id != user_id,
            ChatMessage.status != MESSAGE_READ,
        )
        .update({ChatMessage.status: MESSAGE_READ}, synchronize_session=False)
    )
    db.commit()
    return updated
