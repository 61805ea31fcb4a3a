import datetime
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from starlette.websockets import WebSocketDisconnect

from socialnet.db.session import Base, get_db, get_session_factory
from socialnet.models import User
from socialnet.services.hub import WS_POLICY_VIOLATION, get_hub


def _open_direct(client, headers, other_id) -> int:
    return client.post("/chat/direct", json={"userId": other_id}, headers=headers).json()["chatId"]


def _ready(ws) -> None:
    """Round-trip a ping so the connection is registered before anything is pushed."""
    ws.send_json({"type": "ping"})
    assert ws.receive_json()["type"] == "pong"


class TestConnection:
    """Admission and keep-alive."""

    def test_rejects_missing_session(self, client):
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect("/ws"):
                pass
        assert excinfo.value.code == WS_POLICY_VIOLATION

    def test_rejects_unknown_session(self, client):
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect("/ws", headers={"Cookie": "AccessToken=bogus"}):
                pass
        assert excinfo.value.code == WS_POLICY_VIOLATION

    def test_ping_pong(self, client, auth_headers, alice):
        with client.websocket_connect("/ws", headers=auth_headers(alice)) as ws:
            ws.send_json({"type": "ping"})
            reply = ws.receive_json()
            assert get_hub().is_online(alice.id)

        assert reply["type"] == "pong"
        assert "timestamp" in reply["data"]

    def test_malformed_and_unknown_frames(self, client, auth_headers, alice):
        with client.websocket_connect("/ws", headers=auth_headers(alice)) as ws:
            ws.send_text("not json")
            assert ws.receive_json() == {"type": "error", "data": {"message": "Invalid message format", "code": 400}}

            ws.send_json({"type": "dance"})
            reply = ws.receive_json()
            assert reply["type"] == "error"
            assert reply["data"]["message"] == "Unsupported message type: dance"


class TestLiveDelivery:
    """Messages and notifications pushed to open sockets."""

    def test_http_message_reaches_open_socket(self, client, auth_headers, follow, alice, bob):
        follow(alice, bob)
        chat_id = _open_direct(client, auth_headers(alice), bob.id)

        with client.websocket_connect("/ws", headers=auth_headers(bob)) as ws:
            _ready(ws)
            sent = client.post(f"/chat/{chat_id}/messages", json={"content": "hello"}, headers=auth_headers(alice))
            frame = ws.receive_json()

        assert frame["type"] == "chat_message"
        assert frame["roomId"] == chat_id
        assert frame["data"]["content"] == "hello"
        assert frame["data"]["senderId"] == alice.id
        assert sent.json()["status"] == "delivered"
        # delivered live, so no offline notification
        assert client.get("/notifications", headers=auth_headers(bob)).json() == []

    def test_every_open_socket_of_recipient_gets_the_message(self, client, auth_headers, follow, alice, bob):
        follow(alice, bob)
        chat_id = _open_direct(client, auth_headers(alice), bob.id)
        headers = auth_headers(bob)

        with client.websocket_connect("/ws", headers=headers) as first, \
                client.websocket_connect("/ws", headers=headers) as second:
            _ready(first)
            _ready(second)
            client.post(f"/chat/{chat_id}/messages", json={"content": "twice"}, headers=auth_headers(alice))
            assert first.receive_json()["data"]["content"] == "twice"
            assert second.receive_json()["data"]["content"] == "twice"

    def test_notification_pushed_live(self, client, auth_headers, alice, carol):
        with client.websocket_connect("/ws", headers=auth_headers(carol)) as ws:
            _ready(ws)
            client.post("/follow", json={"followed_id": carol.id}, headers=auth_headers(alice))
            frame = ws.receive_json()

        assert frame["type"] == "notification"
        assert frame["data"]["type"] == "follow_request"
        assert frame["data"]["from_user_id"] == alice.id

    def test_socket_chat_message(self, client, auth_headers, follow, alice, bob):
        follow(alice, bob)

        with client.websocket_connect("/ws", headers=auth_headers(bob)) as bob_ws, \
                client.websocket_connect("/ws", headers=auth_headers(alice)) as alice_ws:
            _ready(bob_ws)
            alice_ws.send_json({"type": "chat_message", "data": {"recipientId": bob.id, "content": "via socket"}})
            received = bob_ws.receive_json()
            echoed = alice_ws.receive_json()

        assert received["type"] == echoed["type"] == "chat_message"
        assert received["data"]["content"] == "via socket"
        assert echoed["roomId"] == received["roomId"]

    def test_socket_chat_message_without_follow(self, client, auth_headers, alice, bob):
        with client.websocket_connect("/ws", headers=auth_headers(alice)) as ws:
            ws.send_json({"type": "chat_message", "data": {"recipientId": bob.id, "content": "hi"}})
            reply = ws.receive_json()

        assert reply == {"type": "error", "data": {"message": "No follow relationship exists", "code": 403}}

    def test_group_message_fans_out_to_members(self, client, auth_headers, alice, bob, carol):
        group = client.post("/groups", json={"title": "Choir"}, headers=auth_headers(alice)).json()
        invitation = client.post(
            f"/groups/{group['id']}/invitations", json={"user_id": bob.id}, headers=auth_headers(alice)
        ).json()
        client.post(f"/groups/{group['id']}/invitations/{invitation['id']}/accept", headers=auth_headers(bob))

        with client.websocket_connect("/ws", headers=auth_headers(bob)) as bob_ws, \
                client.websocket_connect("/ws", headers=auth_headers(alice)) as alice_ws:
            _ready(bob_ws)
            alice_ws.send_json({"type": "group_message", "groupId": group["id"], "data": {"content": "sing"}})
            frame = bob_ws.receive_json()
            echoed = alice_ws.receive_json()

        assert frame["type"] == "group_message"
        assert frame["groupId"] == group["id"]
        assert frame["data"]["content"] == "sing"
        assert echoed["type"] == "group_message"
        # carol is not a member and was never connected; nothing queued for her
        assert client.get("/notifications", headers=auth_headers(carol)).json() == []

    def test_rsvp_update_is_broadcast_to_members(self, client, auth_headers, alice, bob):
        group = client.post("/groups", json={"title": "Runners"}, headers=auth_headers(alice)).json()
        event = client.post(
            f"/groups/{group['id']}/events",
            json={"title": "10k", "event_date": "2031-01-01T08:00:00"},
            headers=auth_headers(alice),
        ).json()

        with client.websocket_connect("/ws", headers=auth_headers(alice)) as ws:
            _ready(ws)
            client.post(f"/groups/events/{event['id']}/respond", json={"status": "going"}, headers=auth_headers(alice))
            frame = ws.receive_json()

        assert frame["type"] == "event_rsvp"
        assert frame["groupId"] == group["id"]
        assert frame["data"] == {"eventId": event["id"], "userId": alice.id, "status": "going", "going": 1, "notGoing": 0}


class TestDatabaseConnections:
    """An open socket must not starve HTTP handlers of pooled connections."""

    def test_idle_socket_releases_its_connection(self, app, tmp_path, session_store):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'pool.db'}",
            connect_args={"check_same_thread": False},
            pool_size=1,
            max_overflow=0,
            pool_timeout=1,
        )
        Base.metadata.create_all(bind=engine)
        PooledSession = sessionmaker(bind=engine, autoflush=False)

        with PooledSession() as db:
            db.add(
                User(
                    username="pooled",
                    email="pooled@example.com",
                    password="not-a-real-hash",
                    first_name="Pooled",
                    last_name="Tester",
                    date_of_birth=datetime.date(1990, 1, 1),
                )
            )
            db.commit()

        def _get_db():
            db = PooledSession()
            try:
                yield db
            finally:
                db.close()

        @contextmanager
        def _scope():
            with PooledSession() as db:
                yield db

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_session_factory] = lambda: _scope
        headers = {"Cookie": f"AccessToken={session_store.issue('pooled')}"}

        try:
            with TestClient(app, base_url="http://test") as client:
                with client.websocket_connect("/ws", headers=headers) as ws:
                    _ready(ws)
                    assert engine.pool.checkedout() == 0
                    response = client.get("/user/current", headers=headers)
        finally:
            engine.dispose()

        assert response.status_code == 200
        assert response.json()["username"] == "pooled"
