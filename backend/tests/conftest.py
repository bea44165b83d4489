import os
import sys
import pytest

# Ensure the backend root (containing the `clockroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from clockroom import create_app, socketio
from clockroom.channel import InMemoryHub
from clockroom.services.clock.scheduling import ScheduledCall


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:3000']
    RELAY_URL = 'http://localhost:5000'
    CLOCK_TICK_SEC = 1.0
    RECONCILE_INITIAL_DELAY_SEC = 1.0
    RECONCILE_BACKOFF_SEC = 1.0
    RECONCILE_MAX_ATTEMPTS = 3
    CHANNEL_TOKEN_TTL_SEC = 60
    REQUIRE_CHANNEL_TOKEN = False


class TokenRequiredConfig(TestConfig):
    REQUIRE_CHANNEL_TOKEN = True


class ManualScheduler:
    """Deterministic stand-in for BackgroundScheduler: time only moves on advance()."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._calls = []

    def call_later(self, delay, callback, *args):
        handle = ScheduledCall()
        self._seq += 1
        self._calls.append((self.now + delay, self._seq, handle, callback, args))
        return handle

    @property
    def pending(self):
        return [c for c in self._calls if not c[2].cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted(c for c in self._calls if c[0] <= target and not c[2].cancelled)
            if not due:
                break
            call = due[0]
            self._calls.remove(call)
            when, _, handle, callback, args = call
            self.now = when
            callback(handle, *args)
        self._calls = [c for c in self._calls if not c[2].cancelled]
        self.now = target


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def hub():
    return InMemoryHub()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
