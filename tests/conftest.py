import json

import pytest

from records import RecordStore
from registry import PeerRegistry
from relay import SignalingRelay
from sessions import SessionTracker


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeConnection:
    """Stands in for a websocket: records every frame sent to it."""

    def __init__(self, name):
        self.name = name
        self.remote_address = (name, 0)
        self.sent = []

    async def send(self, message):
        self.sent.append(json.loads(message))

    def __repr__(self):
        return f"<FakeConnection {self.name}>"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def records_path(tmp_path):
    return str(tmp_path / "data" / "calls.json")


@pytest.fixture
def relay(clock, records_path):
    return SignalingRelay(
        registry=PeerRegistry(),
        sessions=SessionTracker(clock=clock),
        records=RecordStore(records_path, clock=clock),
    )


@pytest.fixture
def make_connection():
    return FakeConnection
