import asyncio
import json

import pytest

from socialnet.schemas.realtime import WsEnvelope
from socialnet.services.hub import WS_NORMAL_CLOSURE, WS_POLICY_VIOLATION, RealtimeHub


class FakeConnection:
    """Records frames written to it; can be told to fail or stall."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0):
        self.sent: list[dict] = []
        self.close_calls: list[int] = []
        self.fail = fail
        self.delay = delay

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("connection reset by peer")
        self.sent.append(json.loads(data))

    async def close(self, code: int = WS_NORMAL_CLOSURE) -> None:
        self.close_calls.append(code)


class TestRegistry:
    """Registering and removing connections."""

    @pytest.mark.asyncio
    async def test_register_marks_user_online(self, hub: RealtimeHub):
        conn = FakeConnection()
        conn_id = hub.register(7, conn)

        assert hub.is_online(7)
        assert hub.online_users() == {7}
        assert hub.connection_count() == 1

        assert await hub.unregister(conn_id) is True
        assert not hub.is_online(7)
        assert conn.close_calls == [WS_NORMAL_CLOSURE]

    @pytest.mark.asyncio
    async def test_connection_is_closed_exactly_once(self, hub: RealtimeHub):
        conn = FakeConnection()
        conn_id = hub.register(7, conn)

        results = await asyncio.gather(hub.unregister(conn_id), hub.unregister(conn_id))

        assert sorted(results) == [False, True]
        assert conn.close_calls == [WS_NORMAL_CLOSURE]

    @pytest.mark.asyncio
    async def test_unregister_without_close(self, hub: RealtimeHub):
        conn = FakeConnection()
        conn_id = hub.register(7, conn)
        assert await hub.unregister(conn_id, close=False) is True
        assert conn.close_calls == []

    @pytest.mark.asyncio
    async def test_unregister_with_code(self, hub: RealtimeHub):
        conn = FakeConnection()
        conn_id = hub.register(7, conn)
        await hub.unregister(conn_id, code=WS_POLICY_VIOLATION)
        assert conn.close_calls == [WS_POLICY_VIOLATION]

    @pytest.mark.asyncio
    async def test_multiple_connections_per_user(self, hub: RealtimeHub):
        first, second = FakeConnection(), FakeConnection()
        first_id = hub.register(7, first)
        hub.register(7, second)

        await hub.unregister(first_id)

        assert hub.is_online(7)
        assert hub.connection_count() == 1


class TestDelivery:
    """Fan-out to live connections."""

    @pytest.mark.asyncio
    async def test_send_reaches_every_connection_of_targets(self, hub: RealtimeHub):
        a1, a2, b, c = FakeConnection(), FakeConnection(), FakeConnection(), FakeConnection()
        hub.register(1, a1)
        hub.register(1, a2)
        hub.register(2, b)
        hub.register(3, c)

        delivered = await hub.send_to_users([1, 2], WsEnvelope(type="notification", data={"id": 5}))

        assert delivered == {1, 2}
        assert a1.sent == a2.sent == b.sent == [{"type": "notification", "data": {"id": 5}}]
        assert c.sent == []

    @pytest.mark.asyncio
    async def test_offline_targets_are_not_delivered(self, hub: RealtimeHub):
        hub.register(1, FakeConnection())
        assert await hub.send_to_users([1, 99], {"type": "ping"}) == {1}

    @pytest.mark.asyncio
    async def test_envelope_uses_camel_case_keys(self, hub: RealtimeHub):
        conn = FakeConnection()
        hub.register(1, conn)

        await hub.send_to_users([1], WsEnvelope(type="group_message", data={}, room_id=4, group_id=9))

        assert conn.sent == [{"type": "group_message", "data": {}, "roomId": 4, "groupId": 9}]

    @pytest.mark.asyncio
    async def test_failed_write_drops_only_that_connection(self, hub: RealtimeHub):
        healthy, broken, other = FakeConnection(), FakeConnection(fail=True), FakeConnection()
        hub.register(1, broken)
        hub.register(1, healthy)
        hub.register(2, other)

        delivered = await hub.send_to_users([1, 2], {"type": "notification"})

        assert delivered == {1, 2}
        assert healthy.sent and other.sent
        assert broken.close_calls == [WS_NORMAL_CLOSURE]
        assert hub.connection_count() == 2

    @pytest.mark.asyncio
    async def test_stalled_write_times_out(self, hub: RealtimeHub):
        slow, fast = FakeConnection(delay=5), FakeConnection()
        hub.register(1, slow)
        hub.register(2, fast)

        delivered = await hub.send_to_users([1, 2], {"type": "notification"})

        assert delivered == {2}
        assert not hub.is_online(1)
        assert fast.sent == [{"type": "notification"}]

    @pytest.mark.asyncio
    async def test_frames_keep_call_order(self, hub: RealtimeHub):
        conn = FakeConnection()
        hub.register(1, conn)

        await asyncio.gather(*(hub.send_to_users([1], {"type": "n", "data": i}) for i in range(20)))

        assert [frame["data"] for frame in conn.sent] == list(range(20))

    @pytest.mark.asyncio
    async def test_send_to_connection(self, hub: RealtimeHub):
        target, sibling = FakeConnection(), FakeConnection()
        conn_id = hub.register(1, target)
        hub.register(1, sibling)

        assert await hub.send_to_connection(conn_id, WsEnvelope(type="pong")) is True
        assert await hub.send_to_connection("missing", WsEnvelope(type="pong")) is False
        assert target.sent == [{"type": "pong"}]
        assert sibling.sent == []

    @pytest.mark.asyncio
    async def test_broadcast_and_close_all(self, hub: RealtimeHub):
        conns = [FakeConnection() for _ in range(3)]
        for user_id, conn in enumerate(conns, start=1):
            hub.register(user_id, conn)

        assert await hub.broadcast({"type": "notice"}) == {1, 2, 3}
        await hub.close_all()

        assert hub.connection_count() == 0
        assert all(conn.close_calls == [WS_NORMAL_CLOSURE] for conn in conns)
