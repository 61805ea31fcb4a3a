"""Real-time hub: registry of live WebSocket connections keyed by user id."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from socialnet.core.locks import ReadWriteLock
from socialnet.core.settings import settings
from socialnet.schemas.realtime import WsEnvelope

logger = logging.getLogger(__name__)

WS_NORMAL_CLOSURE = 1000
WS_POLICY_VIOLATION = 1008


class Connection(Protocol):
    """The subset of ``fastapi.WebSocket`` used by the hub."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = WS_NORMAL_CLOSURE) -> None: ...


@dataclass
class _Registered:
    conn_id: str
    user_id: int
    connection: Connection
    # Serializes writes so frames reach each socket in call order.
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class RealtimeHub:
    """Single process-wide registry of live connections.

    The registry holds the only strong reference to each connection. A
    connection is closed exactly once, by whoever removes it.
    """

    def __init__(self, write_timeout: float | None = None) -> None:
        self._write_timeout = (
            write_timeout if write_timeout is not None else settings.ws_write_timeout_seconds
        )
        self._lock = ReadWriteLock()
        self._by_user: dict[int, dict[str, _Registered]] = {}
        self._by_id: dict[str, _Registered] = {}

    def register(self, user_id: int, connection: Connection) -> str:
        """Admit ``connection`` for ``user_id`` and return its connection id."""
        conn_id = uuid.uuid4().hex
        entry = _Registered(conn_id=conn_id, user_id=user_id, connection=connection)
        with self._lock.write():
            self._by_id[conn_id] = entry
            self._by_user.setdefault(user_id, {})[conn_id] = entry
        logger.info("Connection %s registered for user %s", conn_id, user_id)
        return conn_id

    async def unregister(self, conn_id: str, *, close: bool = True, code: int = WS_NORMAL_CLOSURE) -> bool:
        """Remove a connection and close it.

        Returns:
            True if this call removed the connection, False if it was already gone.
        """
        with self._lock.write():
            entry = self._by_id.pop(conn_id, None)
            if entry is not None:
                user_conns = self._by_user.get(entry.user_id, {})
                user_conns.pop(conn_id, None)
                if not user_conns:
                    self._by_user.pop(entry.user_id, None)
        if entry is None:
            return False
        logger.info("Connection %s removed for user %s", conn_id, entry.user_id)
        if close:
            try:
                await entry.connection.close(code=code)
            except Exception:  # the peer may already be gone
                logger.debug("Close failed for connection %s", conn_id, exc_info=True)
        return True

    def is_online(self, user_id: int) -> bool:
        """Return True if ``user_id`` has at least one live connection."""
        with self._lock.read():
            return bool(self._by_user.get(user_id))

    def online_users(self) -> set[int]:
        """Return the ids of every user with a live connection."""
        with self._lock.read():
            return set(self._by_user)

    def connection_count(self) -> int:
        """Return the total number of live connections."""
        with self._lock.read():
            return len(self._by_id)

    def _snapshot(self, targets: Iterable[int]) -> list[_Registered]:
        with self._lock.read():
            return [
                entry
                for user_id in dict.fromkeys(targets)
                for entry in self._by_user.get(user_id, {}).values()
            ]

    async def _write(self, entry: _Registered, payload: str) -> bool:
        try:
            async with entry.send_lock:
                await asyncio.wait_for(
                    entry.connection.send_text(payload), timeout=self._write_timeout
                )
        except Exception as exc:
            logger.warning(
                "Dropping connection %s for user %s after write failure: %r",
                entry.conn_id,
                entry.user_id,
                exc,
            )
            await self.unregister(entry.conn_id)
            return False
        return True

    async def send_to_users(self, targets: Iterable[int], message: WsEnvelope | dict[str, Any]) -> set[int]:
        """Write ``message`` to every live connection of the target users.

        The message is serialized once. A failed write removes that connection
        and delivery to the remaining connections continues.

        Returns:
            Ids of the users that received the message on at least one connection.
        """
        payload = message.to_wire() if isinstance(message, WsEnvelope) else json.dumps(message, default=str)
        delivered: set[int] = set()
        for entry in self._snapshot(targets):
            if await self._write(entry, payload):
                delivered.add(entry.user_id)
        return delivered

    async def send_to_connection(self, conn_id: str, message: WsEnvelope | dict[str, Any]) -> bool:
        """Write ``message`` to a single connection (replies to inbound frames)."""
        with self._lock.read():
            entry = self._by_id.get(conn_id)
        if entry is None:
            return False
        payload = message.to_wire() if isinstance(message, WsEnvelope) else json.dumps(message, default=str)
        return await self._write(entry, payload)

    async def broadcast(self, message: WsEnvelope | dict[str, Any]) -> set[int]:
        """Send ``message`` to every registered user."""
        return await self.send_to_users(self.online_users(), message)

    async def close_all(self) -> None:
        """Close every live connection (used at shutdown)."""
        with self._lock.read():
            conn_ids = list(self._by_id)
        for conn_id in conn_ids:
            await self.unregister(conn_id, code=WS_NORMAL_CLOSURE)


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    """Return the process-wide real-time hub."""
    return hub
