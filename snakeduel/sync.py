"""Live replication of each player's score and termination flag.

Every slot field has exactly one writer, the client that owns the slot, so a
plain last-writer-wins write is enough. Publishing never blocks the caller:
writes run as tasks and are retried with the newest value, backing off up to
a cap, for as long as the room exists and the channel is open.
Readers get whole-slot snapshots and must not assume sibling fields arrive
together.
"""

import asyncio
import logging
from typing import Callable, Optional

from .constants import FLUSH_TIMEOUT, PUBLISH_MAX_RETRY_DELAY, PUBLISH_RETRY_DELAY
from .errors import StoreError
from .lobby import room_path
from .models import PlayerSlot, Role
from .store import RecordStore, Subscription, maybe_await

logger = logging.getLogger(__name__)


class SyncChannel:
    def __init__(self, store: RecordStore, code: str, role: Role,
                 retries: Optional[int] = None, retry_delay: float = PUBLISH_RETRY_DELAY,
                 max_retry_delay: float = PUBLISH_MAX_RETRY_DELAY,
                 flush_timeout: float = FLUSH_TIMEOUT):
        self.store = store
        self.code = code
        self.role = role
        self.retries = retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.flush_timeout = flush_timeout
        self.room_open = True
        self.closed = False
        self._latest: dict = {}
        self._pending: set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = None

    @property
    def slot_path(self) -> str:
        return room_path(self.code, self.role.value)

    def publish_score(self, score: int) -> asyncio.Task:
        return self._publish({"score": max(score, self._latest.get("score", 0))})

    def publish_termination(self, score: int = None) -> asyncio.Task:
        """Flag this player's run as over, carrying the final score with it."""
        fields = {"terminated": True}
        if score is not None:
            fields["score"] = max(score, self._latest.get("score", 0))
        return self._publish(fields)

    async def subscribe(self, on_update: Callable) -> Subscription:
        """``on_update(local_slot, remote_slot)``; both are None once the room is gone."""

        async def handle(data):
            if not data or not data.get("host"):
                self.room_open = False
                await maybe_await(on_update, None, None)
                return
            local = data.get(self.role.value)
            remote = data.get(self.role.opponent.value)
            await maybe_await(
                on_update,
                PlayerSlot.from_dict(local) if local else None,
                PlayerSlot.from_dict(remote) if remote else None,
            )

        self._subscription = await self.store.subscribe(room_path(self.code), handle)
        return self._subscription

    async def flush(self):
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self):
        """Detach from the room, giving unsent writes ``flush_timeout`` to land."""
        sub, self._subscription = self._subscription, None
        if sub is not None:
            await sub.cancel()
        if self._pending:
            _, unsent = await asyncio.wait(list(self._pending), timeout=self.flush_timeout)
            if unsent:
                logger.warning("Dropping %d unsent write(s) for %s", len(unsent), self.slot_path)
                for task in unsent:
                    task.cancel()
                await asyncio.gather(*unsent, return_exceptions=True)
        self.closed = True

    def _publish(self, fields: dict) -> asyncio.Task:
        self._latest.update(fields)
        task = asyncio.ensure_future(self._write(fields))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, fields: dict) -> bool:
        attempt = 0
        delay = self.retry_delay
        while True:
            if not self.room_open or self.closed:
                logger.debug("Room %s is gone or channel closed; dropping %s", self.code, sorted(fields))
                return False
            attempt += 1
            try:
                await self.store.update(self.slot_path, fields)
                return True
            except StoreError as e:
                logger.warning("Publishing %s for %s failed (attempt %d): %s",
                               sorted(fields), self.slot_path, attempt, e)
            if self.retries is not None and attempt >= self.retries:
                logger.error("Giving up on publishing %s for %s", sorted(fields), self.slot_path)
                return False
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_retry_delay)
            # A later publish may have moved these fields on.
            fields = {key: self._latest[key] for key in fields}
