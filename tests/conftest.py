"""
Pytest fixtures for relay tests.
"""

import asyncio

import pytest

from backend import RoomCodeGenerator, RoomRegistry
from connection import Connection
from relay import RoomRelay


class FakeConnection(Connection):
    """In-memory connection that records everything sent to it."""

    def __init__(self, connection_id=None, open=True):
        super().__init__(connection_id)
        self.open = open
        self.fail_sends = False
        self.sent = []

    def is_open(self):
        return self.open

    async def send_json(self, payload):
        if self.fail_sends:
            raise ConnectionResetError("peer went away")
        self.sent.append(payload)

    def close(self):
        self.open = False

    def types(self):
        return [payload["type"] for payload in self.sent]

    def last(self):
        return self.sent[-1] if self.sent else None


class StalledConnection(FakeConnection):
    """Open connection whose sends hang, as with a peer that stopped reading, while stall is set."""

    def __init__(self, connection_id=None):
        super().__init__(connection_id)
        self.stall = True
        self.attempts = 0

    async def send_json(self, payload):
        self.attempts += 1
        if self.stall:
            await asyncio.sleep(3600)
        self.sent.append(payload)


class ScriptedRandom:
    """Stands in for random.Random: choices() returns the scripted codes in order."""

    def __init__(self, codes):
        self.codes = list(codes)

    def choices(self, population, k):
        code = self.codes.pop(0)
        assert len(code) == k
        return list(code)


@pytest.fixture
def run():
    """Runs coroutines on one event loop that lives for the whole test."""
    loop = asyncio.new_event_loop()
    yield loop.run_until_complete
    loop.close()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def relay(registry):
    return RoomRelay(registry)


@pytest.fixture
def make_connection():
    def factory(connection_id=None, open=True):
        return FakeConnection(connection_id, open=open)
    return factory


@pytest.fixture
def scripted_registry():
    def factory(*codes, max_attempts=10):
        generator = RoomCodeGenerator(max_attempts=max_attempts, rng=ScriptedRandom(codes))
        return RoomRegistry(code_generator=generator)
    return factory
