"""Record store client speaking the relay's JSON protocol over a websocket."""

import asyncio
import itertools
import json
import logging
from typing import Any, Callable, Optional

import websockets
import websockets.exceptions

from . import config
from .constants import RECONNECT_DELAY, REQUEST_TIMEOUT
from .errors import StoreError
from .store import RecordStore, Subscription, maybe_await, split_path

logger = logging.getLogger(__name__)


class RemoteSubscription(Subscription):
    """Delivers pushes for one path in arrival order from its own queue."""

    def __init__(self, store, path, callback):
        super().__init__(store, path, callback)
        self.queue: asyncio.Queue = asyncio.Queue()
        self.pump = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self):
        while True:
            value = await self.queue.get()
            if not self.active:
                return
            try:
                await maybe_await(self.callback, value)
            except Exception:
                logger.exception("Subscriber for %s failed", self.path)


class RemoteRecordStore(RecordStore):
    """Client for ``snakeduel.main``.

    After a dropped connection it reconnects every ``reconnect_delay`` seconds,
    re-registers disconnect hooks and subscriptions, and the relay answers each
    subscription with the current snapshot rather than the missed writes.
    """

    def __init__(self, url: str = config.RELAY_URL, connect: Callable = None,
                 reconnect_delay: float = RECONNECT_DELAY,
                 request_timeout: float = REQUEST_TIMEOUT):
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.request_timeout = request_timeout
        self._connect_fn = connect or websockets.connect
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnector: Optional[asyncio.Task] = None
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._subscriptions: dict[str, list[RemoteSubscription]] = {}
        self._cleanup_paths: list[str] = []
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def open(self) -> "RemoteRecordStore":
        await self._connect()
        return self

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, *exc):
        await self.close()

    async def get(self, path: str) -> Any:
        return await self._request("get", path)

    async def set(self, path: str, value: Any) -> None:
        await self._request("set", path, value=value)

    async def update(self, path: str, fields: dict) -> None:
        await self._request("update", path, fields=fields)

    async def delete(self, path: str) -> None:
        await self._request("delete", path)

    async def on_disconnect_delete(self, path: str) -> None:
        split_path(path)
        if path not in self._cleanup_paths:
            self._cleanup_paths.append(path)
        await self._request("on_disconnect", path)

    async def cancel_on_disconnect(self, path: str) -> None:
        if path in self._cleanup_paths:
            self._cleanup_paths.remove(path)
        # A dropped connection already took its hooks with it on the relay.
        if self.connected:
            try:
                await self._request("off_disconnect", path)
            except StoreError as e:
                logger.debug("Withdrawing disconnect hook for %s failed: %s", path, e)

    async def subscribe(self, path: str, callback: Callable) -> Subscription:
        split_path(path)
        sub = RemoteSubscription(self, path, callback)
        existing = self._subscriptions.setdefault(path, [])
        existing.append(sub)
        if len(existing) == 1:
            # The relay pushes the current value as part of subscribing.
            await self._request("subscribe", path)
        else:
            sub.queue.put_nowait(await self.get(path))
        return sub

    async def _unsubscribe(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.path, [])
        if subscription in subs:
            subs.remove(subscription)
        # Wake the pump so it sees the subscription is inactive; it may be the
        # task running this very call, so it is not cancelled outright.
        subscription.queue.put_nowait(None)
        if not subs:
            self._subscriptions.pop(subscription.path, None)
            if self.connected:
                try:
                    await self._request("unsubscribe", subscription.path)
                except StoreError as e:
                    logger.debug("Unsubscribe from %s failed: %s", subscription.path, e)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._reconnector:
            self._reconnector.cancel()
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.active = False
                sub.pump.cancel()
        self._subscriptions.clear()
        ws, self._ws = self._ws, None
        self._fail_pending("store closed")
        if ws is not None:
            await ws.close()
        if self._reader:
            self._reader.cancel()

    async def _connect(self):
        self._ws = await self._connect_fn(self.url)
        self._reader = asyncio.get_running_loop().create_task(self._read_loop(self._ws))
        logger.info("Connected to relay at %s", self.url)
        for path in self._cleanup_paths:
            await self._request("on_disconnect", path)
        for path in self._subscriptions:
            await self._request("subscribe", path)

    async def _request(self, op: str, path: str, **payload) -> Any:
        if self._ws is None:
            raise StoreError(f"{op} {path}: not connected")
        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send(json.dumps({"op": op, "id": request_id, "path": path, **payload}))
            return await asyncio.wait_for(future, self.request_timeout)
        except asyncio.TimeoutError:
            raise StoreError(f"{op} {path}: no answer within {self.request_timeout}s")
        except websockets.exceptions.ConnectionClosed as e:
            raise StoreError(f"{op} {path}: connection closed") from e
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self, ws):
        try:
            async for raw in ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring malformed message from relay")
                    continue
                self._dispatch(msg)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if ws is self._ws:
                self._connection_lost()

    def _dispatch(self, msg: dict):
        kind = msg.get("type")
        if kind == "value":
            for sub in self._subscriptions.get(msg.get("path"), []):
                sub.queue.put_nowait(msg.get("value"))
            return
        future = self._pending.get(msg.get("id"))
        if kind == "error":
            if future and not future.done():
                future.set_exception(StoreError(msg.get("message", "relay error")))
            else:
                logger.warning("Relay error: %s", msg.get("message"))
        elif kind == "result" and future and not future.done():
            future.set_result(msg.get("value"))

    def _fail_pending(self, reason: str):
        for future in self._pending.values():
            if not future.done():
                future.set_exception(StoreError(reason))

    def _connection_lost(self):
        self._ws = None
        self._fail_pending("connection lost")
        if self._closed:
            return
        logger.warning("Lost connection to relay; reconnecting")
        self._reconnector = asyncio.get_running_loop().create_task(self._reconnect_loop())

    async def _reconnect_loop(self):
        while not self._closed:
            await asyncio.sleep(self.reconnect_delay)
            try:
                await self._connect()
                return
            except (OSError, StoreError, websockets.exceptions.WebSocketException) as e:
                logger.warning("Reconnect to %s failed: %s", self.url, e)
                ws, self._ws = self._ws, None
                if ws is not None:
                    await ws.close()
