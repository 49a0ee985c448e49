import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api import create_app
from settings import Settings


class FixedClock:
    def __init__(self, now=None):
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now = self.now + timedelta(milliseconds=ms)

    @property
    def millis(self):
        return int(self.now.timestamp() * 1000)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._text is not None:
            raise ValueError(f"not json: {self._text!r}")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; replies come from a queue or a callable."""

    def __init__(self, reply=None):
        self.reply = reply or FakeResponse(200, [])
        self.gets = []
        self.posts = []

    def _answer(self):
        reply = self.reply() if callable(self.reply) else self.reply
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, **kwargs):
        self.gets.append((url, kwargs))
        return self._answer()

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        return self._answer()


def inline_spawn(fn, *args):
    fn(*args)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def timeout_error():
    return requests.Timeout("read timed out")


@pytest.fixture
def make_client(clock, session):
    def _make(store=None, **overrides):
        app = create_app(Settings(**overrides), store=store, session=session, clock=clock, spawn=inline_spawn)
        app.testing = True
        return app.test_client()

    return _make
