"""Data models."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .constants import DEFAULT_DIFFICULTY

Position = tuple[int, int]


class Role(Enum):
    HOST = "host"
    GUEST = "guest"

    @property
    def opponent(self) -> "Role":
        return Role.GUEST if self is Role.HOST else Role.HOST


class SessionStatus(Enum):
    WAITING = "waiting"
    READY = "ready"
    PLAYING = "playing"
    FINISHED = "finished"


class MatchPhase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "game_over"


class Outcome(Enum):
    PENDING = "pending"
    WIN = "win"
    LOSE = "lose"
    TIE = "tie"


@dataclass(frozen=True)
class PlayerIdentity:
    pid: str
    name: str
    avatar: Optional[str] = None


@dataclass
class PlayerSlot:
    pid: str
    name: str
    avatar: Optional[str] = None
    score: int = 0
    ready: bool = False
    terminated: bool = False

    @classmethod
    def for_player(cls, identity: PlayerIdentity) -> "PlayerSlot":
        return cls(pid=identity.pid, name=identity.name, avatar=identity.avatar)

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerSlot":
        # Sibling fields may not have arrived yet; fall back to defaults.
        return cls(
            pid=data.get("pid", ""),
            name=data.get("name", ""),
            avatar=data.get("avatar"),
            score=int(data.get("score", 0) or 0),
            ready=bool(data.get("ready", False)),
            terminated=bool(data.get("terminated", False)),
        )

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "name": self.name,
            "avatar": self.avatar,
            "score": self.score,
            "ready": self.ready,
            "terminated": self.terminated,
        }


@dataclass
class MatchSession:
    code: str
    host: Optional[PlayerSlot]
    guest: Optional[PlayerSlot] = None
    status: SessionStatus = SessionStatus.WAITING
    difficulty: str = DEFAULT_DIFFICULTY
    created_at: float = field(default_factory=time.time)

    @property
    def both_ready(self) -> bool:
        return bool(self.host and self.guest and self.host.ready and self.guest.ready)

    @classmethod
    def from_dict(cls, code: str, data: dict) -> "MatchSession":
        host = data.get("host")
        guest = data.get("guest")
        try:
            status = SessionStatus(data.get("status", SessionStatus.WAITING.value))
        except ValueError:
            status = SessionStatus.WAITING
        return cls(
            code=data.get("code", code),
            host=PlayerSlot.from_dict(host) if host else None,
            guest=PlayerSlot.from_dict(guest) if guest else None,
            status=status,
            difficulty=data.get("difficulty", DEFAULT_DIFFICULTY),
            created_at=float(data.get("created_at", 0.0) or 0.0),
        )

    def to_dict(self) -> dict:
        data = {
            "code": self.code,
            "status": self.status.value,
            "difficulty": self.difficulty,
            "created_at": self.created_at,
        }
        if self.host:
            data["host"] = self.host.to_dict()
        if self.guest:
            data["guest"] = self.guest.to_dict()
        return data


@dataclass(frozen=True)
class HighScoreEntry:
    name: str
    score: int
    difficulty: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class StepResult:
    body: list[Position]
    food: Position
    collided: bool = False
    ate_food: bool = False
