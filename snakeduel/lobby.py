"""Two-player rooms: create or join by code, ready up, leave.

Every field of a room has one writer. Each client writes only its own slot;
the host alone writes ``status``. Both clients start their local match when
they first observe ``ready`` (or ``playing``, if the host already moved on).
"""

import logging
import random
from typing import Callable, Optional

from .constants import (
    DIFFICULTIES, DEFAULT_DIFFICULTY, ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, ROOMS_PATH,
)
from .errors import InvalidCode, RoomFull, RoomNotFound
from .models import MatchSession, PlayerIdentity, PlayerSlot, Role, SessionStatus
from .store import RecordStore, Subscription, join_path, maybe_await

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 5


def generate_room_code(rng=None) -> str:
    rng = rng or random
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_code(code) -> str:
    if not isinstance(code, str):
        raise InvalidCode(str(code))
    code = code.strip().upper()
    if len(code) != ROOM_CODE_LENGTH or any(c not in ROOM_CODE_ALPHABET for c in code):
        raise InvalidCode(code)
    return code


def room_path(code: str, *fields: str) -> str:
    return join_path(ROOMS_PATH, code, *fields)


class RoomManager:
    def __init__(self, store: RecordStore, identity: PlayerIdentity,
                 on_change: Callable = None, on_start: Callable = None,
                 on_closed: Callable = None, rng=None):
        self.store = store
        self.identity = identity
        self.on_change = on_change
        self.on_start = on_start
        self.on_closed = on_closed
        self.rng = rng or random.Random()
        self.code: Optional[str] = None
        self.role: Optional[Role] = None
        self.session: Optional[MatchSession] = None
        self._subscription: Optional[Subscription] = None
        self._hook_path: Optional[str] = None
        self._started = False

    @property
    def is_host(self) -> bool:
        return self.role is Role.HOST

    async def create_room(self, difficulty: str = DEFAULT_DIFFICULTY) -> str:
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"unknown difficulty {difficulty!r}")
        self._require_no_room()
        for _ in range(CODE_ATTEMPTS):
            code = generate_room_code(self.rng)
            if not await self.store.get(room_path(code)):
                break
            logger.warning("Room code %s already in use; drawing another", code)
        else:
            raise RuntimeError("could not draw an unused room code")

        session = MatchSession(code=code, host=PlayerSlot.for_player(self.identity), difficulty=difficulty)
        await self.store.set(room_path(code), session.to_dict())
        self.code, self.role, self.session = code, Role.HOST, session
        await self._hold(room_path(code))
        await self._observe()
        logger.info("%s created room %s (%s)", self.identity.name, code, difficulty)
        return code

    async def join_room(self, code: str) -> MatchSession:
        code = normalize_code(code)
        self._require_no_room()
        data = await self.store.get(room_path(code))
        if not data or not data.get("host"):
            raise RoomNotFound(code)
        session = MatchSession.from_dict(code, data)
        if session.guest is not None or session.status is not SessionStatus.WAITING:
            raise RoomFull(code)

        await self.store.set(room_path(code, "guest"), PlayerSlot.for_player(self.identity).to_dict())
        self.code, self.role, self.session = code, Role.GUEST, session
        await self._hold(room_path(code, "guest"))
        await self._observe()
        logger.info("%s joined room %s", self.identity.name, code)
        return self.session

    async def set_ready(self, ready: bool = True):
        self._require_room()
        await self.store.set(room_path(self.code, self.role.value, "ready"), ready)

    async def mark_finished(self):
        """Host only: record that the match has a verdict."""
        self._require_room()
        if not self.is_host:
            return
        if self.session and self.session.status is SessionStatus.FINISHED:
            return
        await self.store.update(room_path(self.code), {"status": SessionStatus.FINISHED.value})

    async def leave(self):
        """Release this client's hold on the room. Safe to call repeatedly."""
        code, role = self.code, self.role
        if code is None:
            return
        self.code = None
        await self._teardown()
        if role is Role.HOST:
            await self.store.delete(room_path(code))
        else:
            await self.store.delete(room_path(code, "guest"))
        logger.info("%s left room %s", self.identity.name, code)

    async def _hold(self, path: str):
        self._hook_path = path
        await self.store.on_disconnect_delete(path)

    async def _observe(self):
        self._started = False
        self._subscription = await self.store.subscribe(room_path(self.code), self._on_snapshot)

    async def _teardown(self):
        sub, self._subscription = self._subscription, None
        self.role = None
        self.session = None
        self._started = False
        hook, self._hook_path = self._hook_path, None
        if sub is not None:
            await sub.cancel()
        if hook is not None:
            await self.store.cancel_on_disconnect(hook)

    async def _on_snapshot(self, data):
        if self.code is None:
            return
        if not data or not data.get("host"):
            code = self.code
            self.code = None
            await self._teardown()
            logger.info("Room %s closed", code)
            if self.on_closed:
                await maybe_await(self.on_closed)
            return

        session = MatchSession.from_dict(self.code, data)
        self.session = session
        if self.is_host and await self._drive_status(session):
            # The write comes back as a fresh snapshot.
            return

        if session.status is SessionStatus.WAITING:
            self._started = False
        elif session.status in (SessionStatus.READY, SessionStatus.PLAYING) and not self._started:
            self._started = True
            if self.on_start:
                await maybe_await(self.on_start, session)
        if self.on_change:
            await maybe_await(self.on_change, session)

    async def _drive_status(self, session: MatchSession) -> bool:
        path = room_path(self.code)
        if session.guest is None:
            if session.status is SessionStatus.WAITING:
                return False
            logger.info("Guest left room %s; waiting for a new opponent", self.code)
            await self.store.update(path, {
                "status": SessionStatus.WAITING.value,
                "host/ready": False,
                "host/score": 0,
                "host/terminated": False,
            })
            return True
        if session.status is SessionStatus.WAITING and session.both_ready:
            await self.store.update(path, {"status": SessionStatus.READY.value})
            return True
        if session.status is SessionStatus.READY:
            await self.store.update(path, {"status": SessionStatus.PLAYING.value})
            return True
        return False

    def _require_room(self):
        if self.code is None:
            raise RuntimeError("not in a room")

    def _require_no_room(self):
        if self.code is not None:
            raise RuntimeError(f"already in room {self.code}; leave it first")
