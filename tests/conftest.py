"""Shared test fixtures: an in-memory Redis and fully wired room services."""
import fakeredis
import pytest
from fastapi.testclient import TestClient

from app import app
from backend import RedisBackend
from dependencies import build_services, get_services
from services.broadcaster import EventBroadcaster


class RecordingBroadcaster(EventBroadcaster):
    """Captures published events instead of sending them anywhere."""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    def publish(self, room_id, event, payload):
        if self.fail:
            raise ConnectionError("broadcast transport down")
        self.events.append((room_id, event, payload))


@pytest.fixture
def redis_client():
    server = fakeredis.FakeServer()
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def store(redis_client):
    # generous retry budget so contention tests never exhaust it
    return RedisBackend(redis_client=redis_client, read_retries=0, admit_max_attempts=100)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def services(store, broadcaster):
    return build_services(store, broadcaster)


@pytest.fixture
def api_services(store):
    """Services with the real Redis broadcaster, as the app wires them."""
    return build_services(store)


@pytest.fixture
def api_client(api_services):
    app.dependency_overrides[get_services] = lambda: api_services
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def failing_services(store):
    """Services whose broadcaster raises on every publish."""
    return build_services(store, RecordingBroadcaster(fail=True))
