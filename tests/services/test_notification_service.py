import json

import pytest

from socialnet.core.errors import NotFoundError
from socialnet.services import groups, notifications


class RecordingConnection:
    def __init__(self):
        self.frames: list[dict] = []

    async def send_text(self, data: str) -> None:
        self.frames.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        pass


class TestEmit:
    """Persist-then-push behaviour."""

    @pytest.mark.asyncio
    async def test_offline_user_keeps_unread_row(self, db_session, hub, alice, bob):
        note = await notifications.emit(db_session, alice.id, "new_follower", "bob followed you",
                                        from_user_id=bob.id, hub=hub)

        [unread] = notifications.list_unread(db_session, alice.id)
        assert unread.id == note.id
        assert unread.is_read is False
        assert unread.from_user_id == bob.id

    @pytest.mark.asyncio
    async def test_live_user_gets_frame_with_group_title(self, db_session, hub, alice, bob):
        group = groups.create_group(db_session, bob.id, "Hikers")
        conn = RecordingConnection()
        hub.register(alice.id, conn)

        note = await notifications.emit(db_session, alice.id, "group_invitation", "join us",
                                        group_id=group.id, hub=hub)

        [frame] = conn.frames
        assert frame["type"] == "notification"
        assert frame["groupId"] == group.id
        assert frame["data"]["id"] == note.id
        assert frame["data"]["group_title"] == "Hikers"
        # delivery does not mark the row read
        assert [n.id for n in notifications.list_unread(db_session, alice.id)] == [note.id]


class TestReadState:
    """Listing and acknowledging notifications."""

    @pytest.mark.asyncio
    async def test_newest_first_and_limited(self, db_session, hub, alice):
        created = [await notifications.emit(db_session, alice.id, "t", f"n{i}", hub=hub) for i in range(4)]

        listed = notifications.list_unread(db_session, alice.id, limit=3)

        assert [n.id for n in listed] == [n.id for n in reversed(created)][:3]

    @pytest.mark.asyncio
    async def test_mark_read_once(self, db_session, hub, alice):
        note = await notifications.emit(db_session, alice.id, "t", "hello", hub=hub)

        notifications.mark_read(db_session, note.id, alice.id)

        assert notifications.list_unread(db_session, alice.id) == []
        with pytest.raises(NotFoundError):
            notifications.mark_read(db_session, note.id, alice.id)

    @pytest.mark.asyncio
    async def test_cannot_mark_someone_elses(self, db_session, hub, alice, bob):
        note = await notifications.emit(db_session, alice.id, "t", "hello", hub=hub)

        with pytest.raises(NotFoundError):
            notifications.mark_read(db_session, note.id, bob.id)
        assert len(notifications.list_unread(db_session, alice.id)) == 1

    @pytest.mark.asyncio
    async def test_mark_all_read(self, db_session, hub, alice, bob):
        await notifications.emit_many(db_session, [alice.id, bob.id], "t", "hello", hub=hub)
        await notifications.emit(db_session, alice.id, "t", "again", hub=hub)

        assert notifications.mark_all_read(db_session, alice.id) == 2
        assert notifications.list_unread(db_session, alice.id) == []
        assert len(notifications.list_unread(db_session, bob.id)) == 1
