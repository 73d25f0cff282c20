"""
Two-player networked snake.

Each client runs its own grid simulation and exchanges only scores and
termination flags through a shared, observable room record.
"""

from .engine import step, spawn_food, initial_snake
from .controller import LocalMatchController
from .lobby import RoomManager
from .sync import SyncChannel
from .outcome import resolve, OutcomeResolver
from .match import DuelMatch
from .models import Outcome, Role, SessionStatus, MatchPhase, PlayerIdentity

__all__ = [
    'step', 'spawn_food', 'initial_snake',
    'LocalMatchController',
    'RoomManager',
    'SyncChannel',
    'resolve', 'OutcomeResolver',
    'DuelMatch',
    'Outcome', 'Role', 'SessionStatus', 'MatchPhase', 'PlayerIdentity',
]
