"""Local high scores and player profile, kept in SQLite.

Best effort only: a storage failure is logged and the caller gets an empty or
default result, never an exception.
"""

import json
import logging
from typing import Optional

import aiosqlite

from . import config
from .constants import DEFAULT_DIFFICULTY, DEFAULT_PLAYER_NAME, HIGH_SCORE_CAP, HIGH_SCORE_DISPLAY
from .models import HighScoreEntry

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (aiosqlite.Error, OSError)

DEFAULT_PROFILE = {"name": DEFAULT_PLAYER_NAME, "avatar": None, "difficulty": DEFAULT_DIFFICULTY}


class HighScoreStore:
    def __init__(self, db_path: str = config.DATABASE_PATH, cap: int = HIGH_SCORE_CAP):
        self.db_path = db_path
        self.cap = cap

    async def initialize(self) -> bool:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS high_scores (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        score INTEGER NOT NULL,
                        difficulty TEXT NOT NULL,
                        timestamp REAL NOT NULL
                    )
                """)
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS profile (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
                await db.commit()
            return True
        except STORAGE_ERRORS as e:
            logger.error("Could not initialize score database %s: %s", self.db_path, e)
            return False

    async def get_top_scores(self, difficulty: Optional[str] = None,
                             limit: int = HIGH_SCORE_DISPLAY) -> list[HighScoreEntry]:
        query = "SELECT name, score, difficulty, timestamp FROM high_scores"
        params: list = []
        if difficulty:
            query += " WHERE difficulty = ?"
            params.append(difficulty)
        query += " ORDER BY score DESC, timestamp ASC LIMIT ?"
        params.append(min(limit, self.cap))
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(query, params)
                rows = await cursor.fetchall()
        except STORAGE_ERRORS as e:
            logger.warning("Loading high scores failed: %s", e)
            return []
        return [HighScoreEntry(name=r[0], score=r[1], difficulty=r[2], timestamp=r[3]) for r in rows]

    async def get_top_score(self, difficulty: str) -> int:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    "SELECT MAX(score) FROM high_scores WHERE difficulty = ?", (difficulty,)
                )
                row = await cursor.fetchone()
        except STORAGE_ERRORS as e:
            logger.warning("Loading top score failed: %s", e)
            return 0
        return row[0] if row and row[0] is not None else 0

    async def save_score(self, entry: HighScoreEntry) -> list[HighScoreEntry]:
        """Append, keep the best ``cap`` entries, return them highest first."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    "INSERT INTO high_scores (name, score, difficulty, timestamp) VALUES (?, ?, ?, ?)",
                    (entry.name, entry.score, entry.difficulty, entry.timestamp),
                )
                await db.execute("""
                    DELETE FROM high_scores WHERE id NOT IN (
                        SELECT id FROM high_scores ORDER BY score DESC, timestamp ASC LIMIT ?
                    )
                """, (self.cap,))
                await db.commit()
        except STORAGE_ERRORS as e:
            logger.warning("Saving score %d for %s failed: %s", entry.score, entry.name, e)
            return []
        return await self.get_top_scores(limit=self.cap)

    async def clear_scores(self) -> bool:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("DELETE FROM high_scores")
                await db.commit()
            return True
        except STORAGE_ERRORS as e:
            logger.warning("Clearing high scores failed: %s", e)
            return False

    async def get_profile(self) -> dict:
        profile = dict(DEFAULT_PROFILE)
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute("SELECT key, value FROM profile")
                rows = await cursor.fetchall()
        except STORAGE_ERRORS as e:
            logger.warning("Loading profile failed: %s", e)
            return profile
        for key, value in rows:
            try:
                profile[key] = json.loads(value)
            except ValueError:
                logger.warning("Ignoring unreadable profile field %r", key)
        return profile

    async def save_profile(self, profile: dict) -> bool:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.executemany(
                    "INSERT OR REPLACE INTO profile (key, value) VALUES (?, ?)",
                    [(key, json.dumps(value)) for key, value in profile.items()],
                )
                await db.commit()
            return True
        except STORAGE_ERRORS as e:
            logger.warning("Saving profile failed: %s", e)
            return False
