"""Single-player match loop: tick scheduling, input buffering, score and phase."""

import asyncio
import inspect
import logging
import random
from typing import Callable, Optional

from .constants import (
    GRID_W, GRID_H, BASE_FOOD_SCORE, DIFFICULTIES, DEFAULT_DIFFICULTY,
    DIRECTIONS, WRAP,
)
from .engine import initial_snake, is_reversal, spawn_food, step
from .models import MatchPhase, StepResult

logger = logging.getLogger(__name__)


def points_for(difficulty: str) -> int:
    return int(BASE_FOOD_SCORE * DIFFICULTIES[difficulty]["multiplier"])


class TickScheduler:
    """Calls ``callback`` every ``interval`` seconds on the running event loop."""

    def __init__(self, callback: Callable[[], None], interval: float):
        self.callback = callback
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    async def _run(self):
        me = asyncio.current_task()
        while True:
            await asyncio.sleep(self.interval)
            if self._task is not me:
                return
            try:
                self.callback()
            except Exception:
                logger.exception("Tick callback failed; scheduler stopped")
                self._task = None
                raise


class LocalMatchController:
    """Owns one player's run: idle -> playing <-> paused -> game_over.

    ``on_score`` and ``on_game_over`` receive the current score. Coroutine
    callbacks are scheduled as tasks so a tick never waits on them.
    """

    def __init__(self, difficulty: str = DEFAULT_DIFFICULTY, width: int = GRID_W,
                 height: int = GRID_H, wall_policy: str = WRAP, rng=None,
                 on_score: Callable = None, on_game_over: Callable = None):
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"unknown difficulty {difficulty!r}")
        self.difficulty = difficulty
        self.width = width
        self.height = height
        self.wall_policy = wall_policy
        self.rng = rng or random.Random()
        self.on_score = on_score
        self.on_game_over = on_game_over
        self.scheduler = TickScheduler(self.tick, DIFFICULTIES[difficulty]["tick_ms"] / 1000)
        self.reset()

    def reset(self):
        self.scheduler.stop()
        self.phase = MatchPhase.IDLE
        self.body = initial_snake(self.width, self.height)
        self.direction = "right"
        self.next_direction = "right"
        self.food = spawn_food(self.body, self.width, self.height, rng=self.rng)
        self.score = 0
        self.ticks = 0

    @property
    def terminated(self) -> bool:
        return self.phase is MatchPhase.GAME_OVER

    def start(self):
        if self.phase is not MatchPhase.IDLE:
            raise RuntimeError(f"cannot start from {self.phase.value}; reset first")
        self.phase = MatchPhase.PLAYING
        self.scheduler.start()

    def pause(self):
        if self.phase is MatchPhase.PLAYING:
            self.scheduler.stop()
            self.phase = MatchPhase.PAUSED

    def resume(self):
        if self.phase is MatchPhase.PAUSED:
            self.phase = MatchPhase.PLAYING
            self.scheduler.start()

    def toggle_pause(self):
        if self.phase is MatchPhase.PLAYING:
            self.pause()
        else:
            self.resume()

    def quit(self):
        """Abandon the run; counts as termination with the current score."""
        if self.phase is MatchPhase.GAME_OVER:
            return
        self._finish()

    def change_direction(self, direction: str) -> bool:
        if self.phase is not MatchPhase.PLAYING or direction not in DIRECTIONS:
            return False
        # Checked against the applied direction so a quick second turn can't
        # fold the head back onto the neck before the next tick.
        if is_reversal(self.direction, direction):
            return False
        self.next_direction = direction
        return True

    def tick(self) -> Optional[StepResult]:
        if self.phase is not MatchPhase.PLAYING:
            return None
        if not is_reversal(self.direction, self.next_direction):
            self.direction = self.next_direction
        result = step(self.body, self.direction, self.food, self.width, self.height,
                      wall_policy=self.wall_policy, rng=self.rng)
        self.ticks += 1
        if result.collided:
            self._finish()
            return result
        self.body, self.food = result.body, result.food
        if result.ate_food:
            self.score += points_for(self.difficulty)
            self._notify(self.on_score, self.score)
        return result

    def _finish(self):
        self.scheduler.stop()
        self.phase = MatchPhase.GAME_OVER
        logger.info("Run over after %d ticks with score %d", self.ticks, self.score)
        self._notify(self.on_game_over, self.score)

    def _notify(self, callback, *args):
        if callback is None:
            return
        result = callback(*args)
        if inspect.isawaitable(result):
            asyncio.ensure_future(result)
