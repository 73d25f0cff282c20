"""WebSocket connection management for the record-store relay.

Each message from a client is a JSON object with an ``op`` and a request
``id``. Replies echo the id; subscription pushes carry the subscribed path.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .store import RecordStore, Subscription, split_path

logger = logging.getLogger(__name__)

OPS = {
    "get", "set", "update", "delete", "subscribe", "unsubscribe", "on_disconnect", "off_disconnect",
}


@dataclass
class ConnectionState:
    subscriptions: dict[str, Subscription] = field(default_factory=dict)
    cleanup_paths: list[str] = field(default_factory=list)


def result_msg(request_id, value=None) -> str:
    return json.dumps({"type": "result", "id": request_id, "value": value})


def error_msg(request_id, message: str) -> str:
    return json.dumps({"type": "error", "id": request_id, "message": message})


def value_msg(path: str, value: Any) -> str:
    return json.dumps({"type": "value", "path": path, "value": value})


class ConnectionManager:
    def __init__(self, store: RecordStore):
        self.store = store
        self.connections: dict[Any, ConnectionState] = {}

    async def connect(self, ws):
        await ws.accept()
        self.register(ws)

    def register(self, ws):
        self.connections[ws] = ConnectionState()

    async def disconnect(self, ws):
        state = self.connections.pop(ws, None)
        if state is None:
            return
        for sub in state.subscriptions.values():
            await sub.cancel()
        for path in state.cleanup_paths:
            logger.info("Connection dropped; removing %s", path)
            await self.store.delete(path)

    async def send_personal(self, ws, message: str):
        await ws.send_text(message)

    async def handle_message(self, ws, raw: str):
        try:
            msg = json.loads(raw)
        except ValueError:
            await self.send_personal(ws, error_msg(None, "malformed JSON"))
            return
        if not isinstance(msg, dict):
            await self.send_personal(ws, error_msg(None, "message must be an object"))
            return
        request_id = msg.get("id")
        op = msg.get("op")
        path = msg.get("path", "")
        if op not in OPS:
            await self.send_personal(ws, error_msg(request_id, f"unknown op {op!r}"))
            return
        try:
            split_path(path)
        except (ValueError, AttributeError):
            await self.send_personal(ws, error_msg(request_id, f"invalid path {path!r}"))
            return

        state = self.connections.get(ws)
        if state is None:
            return
        value = None
        if op == "get":
            value = await self.store.get(path)
        elif op == "set":
            await self.store.set(path, msg.get("value"))
        elif op == "update":
            fields = msg.get("fields")
            if not isinstance(fields, dict):
                await self.send_personal(ws, error_msg(request_id, "update needs a fields object"))
                return
            await self.store.update(path, fields)
        elif op == "delete":
            await self.store.delete(path)
        elif op == "subscribe":
            await self._subscribe(ws, state, path)
        elif op == "unsubscribe":
            sub = state.subscriptions.pop(path, None)
            if sub:
                await sub.cancel()
        elif op == "on_disconnect":
            if path not in state.cleanup_paths:
                state.cleanup_paths.append(path)
        elif op == "off_disconnect":
            if path in state.cleanup_paths:
                state.cleanup_paths.remove(path)
        await self.send_personal(ws, result_msg(request_id, value))

    async def _subscribe(self, ws, state: ConnectionState, path: str):
        old = state.subscriptions.pop(path, None)
        if old:
            await old.cancel()

        async def push(value):
            try:
                await self.send_personal(ws, value_msg(path, value))
            except Exception:
                # The receive loop notices the dead socket and disconnects it.
                logger.debug("Push to closed connection for %s dropped", path)

        state.subscriptions[path] = await self.store.subscribe(path, push)
