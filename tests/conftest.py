import json

import pytest

from src.sync import ClientConfig, EventPage, GameSnapshot


class FakeChannel:
    """In-memory channel driven by the test instead of a socket."""

    def __init__(self, url, handlers):
        self.url = url
        self.handlers = handlers
        self.sent = []
        self.opened = False
        self.closed = False

    @property
    def is_open(self):
        return self.opened and not self.closed

    def send(self, text):
        self.sent.append(json.loads(text))

    def close(self):
        self.closed = True

    # Test drivers

    def open(self):
        self.opened = True
        self.handlers.on_open()

    def deliver(self, message_type, payload=None):
        self.handlers.on_message(json.dumps({"type": message_type, "payload": payload or {}}))

    def deliver_raw(self, text):
        self.handlers.on_message(text)

    def drop(self):
        self.opened = False
        self.closed = True
        self.handlers.on_close()

    def sent_types(self):
        return [m["type"] for m in self.sent]


class FakeChannelFactory:
    def __init__(self):
        self.channels = []

    def __call__(self, url, handlers):
        channel = FakeChannel(url, handlers)
        self.channels.append(channel)
        return channel

    @property
    def last(self):
        return self.channels[-1]


class FakeApi:
    """Stands in for GameApi's async fallbacks."""

    def __init__(self):
        self.snapshot = GameSnapshot(room_id="room-1", state_version=1)
        self.page = EventPage()
        self.gate = None
        self.error = None
        self.snapshot_calls = []
        self.event_calls = []

    async def fetch_snapshot(self, room_id, player):
        self.snapshot_calls.append((room_id, player))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.snapshot

    async def fetch_events(self, room_id, after, limit=50):
        self.event_calls.append((room_id, after, limit))
        if self.error is not None:
            raise self.error
        return self.page


@pytest.fixture()
def channels():
    return FakeChannelFactory()


@pytest.fixture()
def api():
    return FakeApi()


@pytest.fixture()
def config():
    """Short timings so timer-driven behaviour runs in milliseconds."""
    return ClientConfig(
        backend_url="http://game.test:8080",
        heartbeat_interval=0.02,
        reconnect_base_delay=0.01,
        reconnect_multiplier=2.0,
        reconnect_max_delay=0.04,
        sync_fallback_timeout=0.05,
        reconnect_snapshot_timeout=0.02,
        resync_debounce=0.02,
    )
