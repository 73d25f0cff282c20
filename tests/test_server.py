"""
Tests for main.py and connection_manager.py - the relay over HTTP and WebSocket.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from snakeduel import main
from snakeduel.connection_manager import ConnectionManager
from snakeduel.store import MemoryRecordStore


@pytest.fixture
def relay(monkeypatch):
    store = MemoryRecordStore()
    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "manager", ConnectionManager(store))
    return store


@pytest.fixture
def client(relay):
    return TestClient(main.app)


def request(ws, **msg):
    ws.send_text(json.dumps(msg))
    return ws.receive_json()


class TestHttp:
    def test_health(self, client, relay):
        asyncio.run(relay.set("rooms/ABC123/status", "waiting"))
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["rooms"] == 1

    def test_room_lookup(self, client, relay):
        asyncio.run(relay.set("rooms/ABC123", {"code": "ABC123", "status": "waiting"}))
        response = client.get("/rooms/abc123")
        assert response.status_code == 200
        assert response.json()["status"] == "waiting"

    def test_missing_room(self, client):
        assert client.get("/rooms/ZZZZZZ").status_code == 404

    def test_malformed_code(self, client):
        assert client.get("/rooms/nope").status_code == 400


class TestWebSocket:
    def test_set_then_get(self, client):
        with client.websocket_connect("/ws") as ws:
            assert request(ws, op="set", id=1, path="rooms/A/status", value="waiting") == {
                "type": "result", "id": 1, "value": None,
            }
            reply = request(ws, op="get", id=2, path="rooms/A")
            assert reply["value"] == {"status": "waiting"}

    def test_subscription_pushes_other_clients_writes(self, client):
        with client.websocket_connect("/ws") as watcher, client.websocket_connect("/ws") as writer:
            watcher.send_text(json.dumps({"op": "subscribe", "id": 1, "path": "rooms/A"}))
            assert watcher.receive_json() == {"type": "value", "path": "rooms/A", "value": None}
            assert watcher.receive_json()["type"] == "result"

            request(writer, op="update", id=1, path="rooms/A", fields={"host/score": 20})
            push = watcher.receive_json()
            assert push == {"type": "value", "path": "rooms/A", "value": {"host": {"score": 20}}}

    def test_disconnect_hook_removes_path(self, client, relay):
        asyncio.run(relay.set("rooms/A", {"host": {"name": "Alice"}}))
        with client.websocket_connect("/ws") as guest:
            request(guest, op="set", id=1, path="rooms/A/guest", value={"name": "Bob"})
            request(guest, op="on_disconnect", id=2, path="rooms/A/guest")
        assert asyncio.run(relay.get("rooms/A")) == {"host": {"name": "Alice"}}

    def test_withdrawn_hook_spares_the_next_guest(self, client, relay):
        asyncio.run(relay.set("rooms/A", {"host": {"name": "Alice"}}))
        with client.websocket_connect("/ws") as bob:
            request(bob, op="set", id=1, path="rooms/A/guest", value={"name": "Bob"})
            request(bob, op="on_disconnect", id=2, path="rooms/A/guest")
            assert request(bob, op="off_disconnect", id=3, path="rooms/A/guest")["type"] == "result"
            request(bob, op="delete", id=4, path="rooms/A/guest")
            with client.websocket_connect("/ws") as carol:
                request(carol, op="set", id=1, path="rooms/A/guest", value={"name": "Carol"})
        assert asyncio.run(relay.get("rooms/A/guest")) == {"name": "Carol"}

    def test_bad_requests(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"
            assert request(ws, op="explode", id=3, path="rooms/A")["type"] == "error"
            assert request(ws, op="get", id=4, path="/")["type"] == "error"
            reply = request(ws, op="update", id=5, path="rooms/A", fields=[1, 2])
            assert reply == {"type": "error", "id": 5, "message": "update needs a fields object"}
            for frame in ("[1, 2]", "5", '"x"'):
                ws.send_text(frame)
                assert ws.receive_json() == {"type": "error", "id": None, "message": "message must be an object"}
            assert request(ws, op="get", id=6, path="rooms/A")["type"] == "result"


class TestSweep:
    def test_only_stale_waiting_rooms_are_removed(self, relay):
        async def scenario():
            await relay.set("rooms/OLD111", {"status": "waiting", "created_at": 0.0, "host": {"name": "a"}})
            await relay.set("rooms/OLD222", {"status": "playing", "created_at": 0.0, "host": {"name": "b"}})
            await relay.set("rooms/NEW333", {"status": "waiting", "created_at": 9000.0, "host": {"name": "c"}})
            removed = await main.sweep_stale_rooms(now=10000.0)
            return removed, sorted((await relay.get("rooms")).keys())

        removed, remaining = asyncio.run(scenario())
        assert removed == ["OLD111"]
        assert remaining == ["NEW333", "OLD222"]
