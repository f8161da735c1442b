"""Tests for the HTTP and WebSocket surface over the room services."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import app
from constants import AUTH_COOKIE_NAME


def create_room(client):
    response = client.post("/api/room/create")
    assert response.status_code == 201
    return response.json()["room_id"]


def join(client, room_id):
    return client.post("/api/room/join", params={"roomId": room_id})


class TestRoomEndpoints:

    def test_join_issues_token_cookie(self, api_client):
        room_id = create_room(api_client)
        response = join(api_client, room_id)
        assert response.status_code == 200
        data = response.json()
        assert data["room_id"] == room_id
        assert data["connected_count"] == 1
        assert 0 < data["ttl"] <= 600
        assert data["newly_admitted"] is True
        assert data["created_at"] > 0
        assert api_client.cookies.get(AUTH_COOKIE_NAME) == data["token"]

    def test_rejoin_keeps_same_token(self, api_client):
        room_id = create_room(api_client)
        first = join(api_client, room_id).json()
        second = join(api_client, room_id).json()
        assert first["token"] == second["token"]
        assert second["connected_count"] == 1
        assert second["newly_admitted"] is False

    def test_join_unknown_room(self, api_client):
        assert join(api_client, "missing").status_code == 404

    def test_join_full_room(self, api_client):
        room_id = create_room(api_client)
        for i in range(10):
            member = TestClient(app, cookies={AUTH_COOKIE_NAME: f"member-{i}"})
            assert join(member, room_id).status_code == 200
        latecomer = TestClient(app, cookies={AUTH_COOKIE_NAME: "latecomer"})
        response = join(latecomer, room_id)
        assert response.status_code == 403
        assert response.json() == {"error": "Room is full"}

    def test_ttl(self, api_client):
        room_id = create_room(api_client)
        join(api_client, room_id)
        response = api_client.get("/api/room/ttl", params={"roomId": room_id})
        assert response.status_code == 200
        assert 0 < response.json()["ttl"] <= 600

    def test_guarded_endpoints_require_token(self, api_client):
        room_id = create_room(api_client)
        assert api_client.get("/api/room/ttl", params={"roomId": room_id}).status_code == 401
        assert api_client.get("/api/message", params={"roomId": room_id}).status_code == 401

    def test_unknown_room_looks_unauthorized(self, api_client):
        client = TestClient(app, cookies={AUTH_COOKIE_NAME: "tok"})
        response = client.get("/api/message", params={"roomId": "missing"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    def test_destroy(self, api_client):
        room_id = create_room(api_client)
        join(api_client, room_id)
        response = api_client.delete("/api/room/destroy", params={"roomId": room_id})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Room destroyed"}
        assert api_client.get("/api/room/ttl", params={"roomId": room_id}).status_code == 401
        assert join(api_client, room_id).status_code == 404


class TestMessageEndpoints:

    def test_send_and_list(self, api_client):
        room_id = create_room(api_client)
        join(api_client, room_id)
        sent = api_client.post("/api/message", params={"roomId": room_id}, json={"sender": "alice", "text": "hi"})
        assert sent.status_code == 200
        assert sent.json()["success"] is True

        listed = api_client.get("/api/message", params={"roomId": room_id})
        assert listed.status_code == 200
        messages = listed.json()["messages"]
        assert len(messages) == 1
        assert messages[0]["id"] == sent.json()["message_id"]
        assert messages[0]["sender"] == "alice"
        assert "token" not in messages[0]

    def test_send_records_history_for_late_subscribers(self, api_client, api_services):
        room_id = create_room(api_client)
        join(api_client, room_id)
        api_client.post("/api/message", params={"roomId": room_id}, json={"sender": "alice", "text": "hi"})
        events = api_services.broadcaster.recent_events(room_id)
        assert [e["event"] for e in events] == ["message"]
        assert events[0]["data"]["text"] == "hi"
        assert "token" not in events[0]["data"]

    @pytest.mark.parametrize("body", [
        {"sender": "a" * 101, "text": "hi"},
        {"sender": "alice", "text": "x" * 1001},
        {"sender": "alice"},
    ])
    def test_send_rejects_invalid_body(self, api_client, body):
        room_id = create_room(api_client)
        join(api_client, room_id)
        response = api_client.post("/api/message", params={"roomId": room_id}, json=body)
        assert response.status_code == 422


class TestRoomEventsSocket:

    def test_rejects_unknown_token_room(self, api_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with api_client.websocket_connect("/rooms/missing/ws?token=tok"):
                pass
        assert exc_info.value.code == 1008

    def test_rejects_missing_token(self, api_client):
        room_id = create_room(api_client)
        with pytest.raises(WebSocketDisconnect):
            with api_client.websocket_connect(f"/rooms/{room_id}/ws"):
                pass

    def test_replays_relays_and_closes_on_destroy(self, api_client):
        room_id = create_room(api_client)
        token = join(api_client, room_id).json()["token"]
        api_client.post("/api/message", params={"roomId": room_id}, json={"sender": "alice", "text": "before"})

        with api_client.websocket_connect(f"/rooms/{room_id}/ws?token={token}") as ws:
            replayed = ws.receive_json()
            assert replayed["event"] == "message"
            assert replayed["data"]["text"] == "before"

            # stray frames from the subscriber are ignored
            ws.send_bytes(b"\x00\x01")

            api_client.post("/api/message", params={"roomId": room_id}, json={"sender": "bob", "text": "live"})
            live = ws.receive_json()
            assert live["event"] == "message"
            assert live["data"]["sender"] == "bob"
            assert "token" not in live["data"]

            api_client.delete("/api/room/destroy", params={"roomId": room_id})
            assert ws.receive_json() == {"event": "destroy", "room_id": room_id, "data": {"isDestroyed": True}}

            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()
