"""
Pytest configuration and shared fixtures.

Test env vars default to a throwaway SQLite file; values already set in the
environment (e.g. from .env.test) take precedence.
"""

import os

import httpx
import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_blackmyna.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Clear settings cache before any app imports to ensure test env vars are used
from blackmyna.config import get_settings
get_settings.cache_clear()

from blackmyna.domain import Channel, MsgStatus, ExternalID, InternalID, IncomingMessage  # noqa: E402
from blackmyna.storage import Base, engine  # noqa: E402


CHANNEL_UUID = "8eb23e93-5ecb-45ba-b726-3b064e0c56ab"

CREDENTIALS = {"username": "bm-user", "password": "bm-pass", "api_key": "bm-key"}


class FakeBackend:
    """Records every message and status handed to it."""

    def __init__(self, fail_writes: bool = False):
        self.messages = []
        self.statuses = []
        self.fail_writes = fail_writes
        self._next_id = 1

    def new_incoming_msg(self, channel, urn, text):
        return IncomingMessage(uuid=f"msg-{self._next_id}", channel=channel, urn=urn, text=text)

    def write_msg(self, msg):
        if self.fail_writes:
            raise RuntimeError("backend unavailable")
        self.messages.append(msg)
        self._next_id += 1
        return msg

    def new_status_for_external_id(self, channel, external_id, status):
        return MsgStatus(channel=channel, key=ExternalID(external_id), status=status)

    def new_status_for_id(self, channel, msg_id, status):
        return MsgStatus(channel=channel, key=InternalID(msg_id), status=status)

    def write_status(self, status):
        if self.fail_writes:
            raise RuntimeError("backend unavailable")
        self.statuses.append(status)


class RecordingTransport(httpx.MockTransport):
    """httpx mock transport that keeps every request it was asked to send."""

    def __init__(self, handler):
        self.requests = []

        def record(request):
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def channel() -> Channel:
    return Channel(
        uuid=CHANNEL_UUID,
        channel_type="BM",
        address="2020",
        country="US",
        name="Blackmyna Test",
        config=dict(CREDENTIALS),
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fresh_db():
    """Create all tables before the test and drop them afterwards."""
    from blackmyna import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
