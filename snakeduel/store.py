"""Path-addressed, observable record store.

The lobby and the synchronization channel only talk to a ``RecordStore``.
``MemoryRecordStore`` keeps the tree in process and is what the relay server
serves; ``snakeduel.remote.RemoteRecordStore`` reaches it over a websocket.
"""

import copy
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)


def split_path(path: str) -> list[str]:
    keys = [k for k in path.strip("/").split("/") if k]
    if not keys:
        raise ValueError("path must name at least one key")
    return keys


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p)


def paths_overlap(a: str, b: str) -> bool:
    """True when one path is the other or an ancestor of it."""
    ka, kb = split_path(a), split_path(b)
    n = min(len(ka), len(kb))
    return ka[:n] == kb[:n]


async def maybe_await(callback: Callable, *args):
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Subscription:
    def __init__(self, store: "RecordStore", path: str, callback: Callable):
        self.store = store
        self.path = path
        self.callback = callback
        self.active = True

    async def cancel(self):
        if not self.active:
            return
        self.active = False
        await self.store._unsubscribe(self)


class RecordStore(ABC):
    @abstractmethod
    async def get(self, path: str) -> Any:
        ...

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        ...

    @abstractmethod
    async def update(self, path: str, fields: dict) -> None:
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        ...

    @abstractmethod
    async def subscribe(self, path: str, callback: Callable) -> Subscription:
        ...

    @abstractmethod
    async def _unsubscribe(self, subscription: Subscription) -> None:
        ...

    async def on_disconnect_delete(self, path: str) -> None:
        """Ask the server to delete ``path`` if this client drops.

        Stores without a connection have nothing to do.
        """

    async def cancel_on_disconnect(self, path: str) -> None:
        """Withdraw an earlier ``on_disconnect_delete`` for ``path``."""

    async def close(self) -> None:
        pass


class MemoryRecordStore(RecordStore):
    """In-process tree of nested dicts.

    Subscribers are notified before the write returns, each with a fresh copy
    of its own path. A failing subscriber is logged and skipped.
    """

    def __init__(self):
        self._root: dict = {}
        self._subscriptions: list[Subscription] = []

    def snapshot(self, path: str) -> Any:
        node = self._root
        for key in split_path(path):
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return copy.deepcopy(node)

    async def get(self, path: str) -> Any:
        return self.snapshot(path)

    async def set(self, path: str, value: Any) -> None:
        self._write(path, value)
        await self._notify(path)

    async def update(self, path: str, fields: dict) -> None:
        for key, value in fields.items():
            self._write(join_path(path, key), value)
        await self._notify(path)

    async def delete(self, path: str) -> None:
        self._write(path, None)
        await self._notify(path)

    async def subscribe(self, path: str, callback: Callable) -> Subscription:
        split_path(path)
        sub = Subscription(self, path, callback)
        self._subscriptions.append(sub)
        await self._deliver(sub)
        return sub

    async def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _write(self, path: str, value: Any):
        keys = split_path(path)
        if value is None:
            self._remove(self._root, keys)
            return
        node = self._root
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child
        node[keys[-1]] = copy.deepcopy(value)

    def _remove(self, node: dict, keys: list[str]) -> bool:
        """Remove the leaf and prune parents left empty. Returns True if ``node`` is now empty."""
        key = keys[0]
        if key not in node:
            return not node
        if len(keys) == 1:
            del node[key]
        elif isinstance(node[key], dict) and self._remove(node[key], keys[1:]):
            del node[key]
        return not node

    async def _notify(self, path: str):
        for sub in list(self._subscriptions):
            if sub.active and paths_overlap(sub.path, path):
                await self._deliver(sub)

    async def _deliver(self, sub: Subscription):
        try:
            await maybe_await(sub.callback, self.snapshot(sub.path))
        except Exception:
            logger.exception("Subscriber for %s failed", sub.path)
