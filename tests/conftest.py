"""Shared fixtures."""

import asyncio

import pytest

from snakeduel.models import PlayerIdentity
from snakeduel.store import MemoryRecordStore


class SequenceRandom:
    """Stand-in for ``random.Random`` that replays fixed values."""

    def __init__(self, values):
        self.values = list(values)

    def randrange(self, stop):
        return self.values.pop(0) % stop

    def choice(self, seq):
        return seq[self.values.pop(0) % len(seq)]


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def alice():
    return PlayerIdentity(pid="p-alice", name="Alice")


@pytest.fixture
def bob():
    return PlayerIdentity(pid="p-bob", name="Bob", avatar="avatars/bob.png")


@pytest.fixture
def carol():
    return PlayerIdentity(pid="p-carol", name="Carol")
