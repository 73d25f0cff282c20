"""One client's side of a two-player match.

Runs the local controller, publishes its score and termination through the
sync channel, and re-resolves the verdict whenever either side's state
arrives. The two clients never share memory; all they see of each other is
the room record.
"""

import asyncio
import inspect
import logging
from typing import Callable, Optional

from .controller import LocalMatchController
from .lobby import RoomManager
from .models import Outcome, PlayerSlot
from .outcome import OutcomeResolver
from .store import maybe_await
from .sync import SyncChannel

logger = logging.getLogger(__name__)


class DuelMatch:
    def __init__(self, room: RoomManager, on_verdict: Callable = None,
                 on_update: Callable = None, on_opponent_left: Callable = None,
                 **controller_options):
        if room.session is None:
            raise RuntimeError("room has no session yet")
        self.room = room
        self.code = room.code
        self.role = room.role
        self.on_verdict = on_verdict
        self.on_update = on_update
        self.on_opponent_left = on_opponent_left
        self.channel = SyncChannel(room.store, room.code, room.role)
        self.controller = LocalMatchController(
            room.session.difficulty,
            on_score=self._score_changed,
            on_game_over=self._game_over,
            **controller_options,
        )
        self.resolver = OutcomeResolver()
        self.remote: Optional[PlayerSlot] = None
        self._background: set[asyncio.Task] = set()

    @property
    def verdict(self) -> Outcome:
        return self.resolver.verdict

    async def start(self):
        await self.channel.subscribe(self._on_sync)
        self.controller.start()
        logger.info("Match in room %s started as %s", self.code, self.role.value)

    async def stop(self):
        """Quit the local run (if still going) and detach from the room."""
        self.controller.quit()
        await self.channel.close()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def change_direction(self, direction: str) -> bool:
        return self.controller.change_direction(direction)

    def _score_changed(self, score: int):
        self.channel.publish_score(score)

    def _game_over(self, score: int):
        self.channel.publish_termination(score)
        self._evaluate()

    async def _on_sync(self, local: Optional[PlayerSlot], remote: Optional[PlayerSlot]):
        if local is None and remote is None:
            logger.info("Room %s closed mid-match", self.code)
            # No opponent left to resolve against.
            self.remote = None
            self.controller.quit()
            return
        if remote is None:
            if self.remote is not None and not self.resolver.finished:
                logger.info("Opponent left room %s", self.code)
                self.remote = None
                if self.on_opponent_left:
                    await maybe_await(self.on_opponent_left)
            return
        self.remote = remote
        if self.on_update:
            await maybe_await(self.on_update, local, remote)
        self._evaluate()

    def _evaluate(self):
        if self.remote is None or self.resolver.finished:
            return
        verdict = self.resolver.observe(
            self.controller.score, self.controller.terminated,
            self.remote.score, self.remote.terminated,
        )
        if verdict is Outcome.PENDING:
            return
        logger.info("Room %s resolved for %s: %s (%d vs %d)", self.code, self.role.value,
                    verdict.value, self.controller.score, self.remote.score)
        if self.on_verdict:
            self._spawn(self.on_verdict(verdict))
        if self.room.is_host:
            self._spawn(self.room.mark_finished())

    def _spawn(self, result):
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
