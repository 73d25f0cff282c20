"""
Tests for scores.py - local high scores and profile.
"""

import asyncio

import pytest

from snakeduel.models import HighScoreEntry
from snakeduel.scores import DEFAULT_PROFILE, HighScoreStore


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def scores(tmp_path):
    store = HighScoreStore(str(tmp_path / "scores.db"), cap=5)
    assert run(store.initialize()) is True
    return store


class TestHighScores:
    def test_sorted_highest_first(self, scores):
        async def scenario():
            await scores.save_score(HighScoreEntry("Alice", 30, "easy", 1.0))
            await scores.save_score(HighScoreEntry("Bob", 90, "hard", 2.0))
            return await scores.save_score(HighScoreEntry("Carol", 60, "easy", 3.0))

        entries = run(scenario())
        assert [e.score for e in entries] == [90, 60, 30]
        assert entries[0] == HighScoreEntry("Bob", 90, "hard", 2.0)

    def test_truncated_to_cap(self, scores):
        async def scenario():
            for i in range(8):
                await scores.save_score(HighScoreEntry("P", i * 10, "easy", float(i)))
            return await scores.get_top_scores(limit=100)

        assert [e.score for e in run(scenario())] == [70, 60, 50, 40, 30]

    def test_filter_by_difficulty_and_top_score(self, scores):
        async def scenario():
            await scores.save_score(HighScoreEntry("Alice", 30, "easy"))
            await scores.save_score(HighScoreEntry("Bob", 90, "hard"))
            easy = await scores.get_top_scores("easy")
            return easy, await scores.get_top_score("hard"), await scores.get_top_score("expert")

        easy, hard_best, expert_best = run(scenario())
        assert [e.name for e in easy] == ["Alice"]
        assert hard_best == 90
        assert expert_best == 0

    def test_clear(self, scores):
        async def scenario():
            await scores.save_score(HighScoreEntry("Alice", 30, "easy"))
            cleared = await scores.clear_scores()
            return cleared, await scores.get_top_scores()

        assert run(scenario()) == (True, [])

    def test_storage_failure_degrades_to_empty(self, tmp_path):
        broken = HighScoreStore(str(tmp_path / "missing" / "dir" / "scores.db"))

        async def scenario():
            return (
                await broken.get_top_scores(),
                await broken.save_score(HighScoreEntry("Alice", 30, "easy")),
                await broken.get_top_score("easy"),
                await broken.clear_scores(),
            )

        assert run(scenario()) == ([], [], 0, False)


class TestProfile:
    def test_defaults_then_round_trip(self, scores):
        async def scenario():
            before = await scores.get_profile()
            saved = await scores.save_profile({"name": "Alice", "avatar": "a.png", "difficulty": "hard"})
            return before, saved, await scores.get_profile()

        before, saved, after = run(scenario())
        assert before == DEFAULT_PROFILE
        assert saved is True
        assert after == {"name": "Alice", "avatar": "a.png", "difficulty": "hard"}

    def test_partial_profile_keeps_defaults(self, scores):
        async def scenario():
            await scores.save_profile({"name": "Bob"})
            return await scores.get_profile()

        profile = run(scenario())
        assert profile["name"] == "Bob"
        assert profile["difficulty"] == DEFAULT_PROFILE["difficulty"]
