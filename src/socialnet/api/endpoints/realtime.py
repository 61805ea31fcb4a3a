"""Authenticated WebSocket endpoint feeding the real-time hub."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session

from socialnet.api.dependencies import HubDep, SessionFactoryDep, SessionStoreDep, resolve_user
from socialnet.core.errors import DomainError, InvalidInputError, NotFoundError
from socialnet.core.settings import settings
from socialnet.db.time import utcnow
from socialnet.models import Group
from socialnet.schemas.realtime import WsEnvelope
from socialnet.services import chat
from socialnet.services.hub import WS_POLICY_VIOLATION, RealtimeHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _error(message: str, code: int = 400) -> WsEnvelope:
    return WsEnvelope(type="error", data={"message": message, "code": code})


def _content(data: dict[str, Any]) -> str:
    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise InvalidInputError("Missing required field: content")
    return content


def _int_field(data: dict[str, Any], *names: str) -> int | None:
    for name in names:
        value = data.get(name)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid value for field {name}") from exc
    return None


async def _direct_message(db: Session, hub: RealtimeHub, user_id: int, envelope: WsEnvelope) -> WsEnvelope:
    data = envelope.data if isinstance(envelope.data, dict) else {}
    content = _content(data)
    chat_id = _int_field({"roomId": envelope.room_id, **data}, "chatId", "chat_id", "roomId")
    if chat_id is None:
        recipient_id = _int_field(data, "recipientId", "recipient_id")
        if recipient_id is None:
            raise InvalidInputError("Missing required field: recipientId")
        direct, _ = chat.create_or_get_direct(db, user_id, recipient_id)
        chat_id = direct.id
    message = await chat.send(db, chat_id, user_id, content, hub=hub)
    return WsEnvelope(
        type="chat_message",
        data=message.model_dump(mode="json", by_alias=True),
        room_id=chat_id,
    )


async def _group_message(db: Session, hub: RealtimeHub, user_id: int, envelope: WsEnvelope) -> WsEnvelope:
    data = envelope.data if isinstance(envelope.data, dict) else {}
    content = _content(data)
    chat_id = _int_field(data, "chatId", "chat_id")
    group_id = envelope.group_id or _int_field(data, "groupId", "group_id")
    if chat_id is None:
        if group_id is None:
            raise InvalidInputError("Missing required field: groupId")
        group = db.get(Group, group_id)
        if group is None or group.chat_id is None:
            raise NotFoundError("Group not found")
        chat_id = group.chat_id
    message = await chat.send(db, chat_id, user_id, content, hub=hub)
    return WsEnvelope(
        type="group_message",
        data=message.model_dump(mode="json", by_alias=True),
        room_id=chat_id,
        group_id=message.group_id,
    )


async def handle_frame(db: Session, hub: RealtimeHub, user_id: int, raw: str) -> WsEnvelope | None:
    """Process one inbound frame and return the reply for the sender, if any."""
    try:
        envelope = WsEnvelope.model_validate_json(raw)
    except ValidationError:
        logger.info("Malformed frame from user %s", user_id)
        return _error("Invalid message format")

    try:
        if envelope.type == "ping":
            return WsEnvelope(type="pong", data={"timestamp": utcnow().isoformat()})
        if envelope.type == "chat_message":
            return await _direct_message(db, hub, user_id, envelope)
        if envelope.type == "group_message":
            return await _group_message(db, hub, user_id, envelope)
    except DomainError as exc:
        db.rollback()
        return _error(exc.message, exc.status_code)
    return _error(f"Unsupported message type: {envelope.type}")


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    session_factory: SessionFactoryDep,
    store: SessionStoreDep,
    hub: HubDep,
) -> None:
    """Admit an authenticated connection and serve its inbound frames.

    No database session is held while the socket waits for frames; each
    frame runs in its own short-lived scope.
    """
    token = websocket.cookies.get(settings.session_cookie_name)
    with session_factory() as db:
        user = resolve_user(db, store, token)
        user_id = user.id if user is not None else None
    if user_id is None:
        logger.info("WebSocket rejected: no valid session")
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    conn_id = hub.register(user_id, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            with session_factory() as db:
                try:
                    reply = await handle_frame(db, hub, user_id, raw)
                except Exception:
                    db.rollback()
                    logger.exception("Failed to handle frame from user %s", user_id)
                    reply = _error("Something went wrong", 500)
            if reply is not None:
                await hub.send_to_connection(conn_id, reply)
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for user %s", user_id)
    finally:
        await hub.unregister(conn_id, close=False)
