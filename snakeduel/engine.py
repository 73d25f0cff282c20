"""Grid simulation: one deterministic movement step plus food placement."""

import random
from typing import Optional

from .constants import (
    GRID_W, GRID_H, INITIAL_LENGTH, FOOD_PLACEMENT_ATTEMPTS,
    DIRECTIONS, OPPOSITES, WRAP, SOLID,
)
from .errors import FoodPlacementExhausted
from .models import Position, StepResult


def initial_snake(width: int = GRID_W, height: int = GRID_H, length: int = INITIAL_LENGTH) -> list[Position]:
    """Centred horizontal snake, head first, facing right."""
    cx, cy = width // 2, height // 2
    return [((cx - i) % width, cy) for i in range(length)]


def is_reversal(current: str, requested: str) -> bool:
    return OPPOSITES.get(requested) == current


def move_head(head: Position, direction: str, width: int, height: int,
              wall_policy: str = WRAP) -> Optional[Position]:
    """Next head cell, or None when the move leaves a solid-walled grid."""
    dx, dy = DIRECTIONS[direction]
    x, y = head[0] + dx, head[1] + dy
    if wall_policy == WRAP:
        return (x % width, y % height)
    if 0 <= x < width and 0 <= y < height:
        return (x, y)
    return None


def spawn_food(body, width: int, height: int, rng=None,
               attempts: int = FOOD_PLACEMENT_ATTEMPTS) -> Position:
    rng = rng or random
    occupied = set(body)
    for _ in range(attempts):
        cell = (rng.randrange(width), rng.randrange(height))
        if cell not in occupied:
            return cell
    raise FoodPlacementExhausted(
        f"no free cell after {attempts} attempts on a {width}x{height} grid "
        f"holding a snake of length {len(occupied)}"
    )


def step(body, direction: str, food: Position, width: int = GRID_W, height: int = GRID_H,
         wall_policy: str = WRAP, rng=None) -> StepResult:
    """Advance the snake one cell.

    Returns the new body and food. On collision the input body is returned
    unchanged with ``collided`` set. The tail cell is not an obstacle unless
    the snake grows this step, because it is vacated as the head moves.
    """
    assert body, "snake body must hold at least one cell"
    assert direction in DIRECTIONS, f"unknown direction {direction!r}"
    assert wall_policy in (WRAP, SOLID), f"unknown wall policy {wall_policy!r}"

    body = list(body)
    head = move_head(body[0], direction, width, height, wall_policy)
    if head is None:
        return StepResult(body=body, food=food, collided=True)

    ate_food = head == food
    kept = body if ate_food else body[:-1]
    if head in kept:
        return StepResult(body=body, food=food, collided=True)

    new_body = [head] + kept
    if ate_food:
        food = spawn_food(new_body, width, height, rng=rng)
    return StepResult(body=new_body, food=food, ate_food=ate_food)
