"""
Tests for dispatch_outgoing: one send attempt, status persisted.
"""

import httpx
import pytest

from blackmyna.dispatch import dispatch_outgoing
from blackmyna.domain import Channel, MsgStatusValue
from blackmyna.errors import ConfigurationError
from blackmyna.handler import BlackmynaHandler
from blackmyna.models import ChannelLog, Message, MsgStatus
from blackmyna.storage import SessionLocal, SQLBackend, create_channel
from blackmyna.urns import URN

from conftest import CHANNEL_UUID, CREDENTIALS, RecordingTransport


@pytest.fixture
def backend(fresh_db):
    return SQLBackend()


@pytest.fixture
def stored_channel(fresh_db) -> Channel:
    with SessionLocal() as db:
        return create_channel(
            db, channel_type="BM", address="2020", country="US",
            config=CREDENTIALS, channel_uuid=CHANNEL_UUID,
        )


def handler_for(backend, responder):
    transport = RecordingTransport(responder)
    return BlackmynaHandler(backend, client=httpx.Client(transport=transport)), transport


def test_dispatch_wired(backend, stored_channel):
    handler, _ = handler_for(backend, lambda request: httpx.Response(200, json=[{"id": "123"}]))
    msg = backend.new_outgoing_msg(stored_channel, URN("tel", "+15551234567"), "Hello")

    status = dispatch_outgoing(handler, backend, msg)

    assert status.status == MsgStatusValue.WIRED
    with SessionLocal() as db:
        row = db.query(MsgStatus).one()
        assert row.msg_id == msg.id
        assert row.external_id == "123"
        assert row.status == "wired"
        assert db.query(Message).filter(Message.id == msg.id).one().external_id == "123"
        assert db.query(ChannelLog).count() == 1


def test_dispatch_transport_failure_written_as_errored(backend, stored_channel):
    handler, _ = handler_for(backend, lambda request: httpx.Response(503, text="unavailable"))
    msg = backend.new_outgoing_msg(stored_channel, URN("tel", "+15551234567"), "Hello")

    status = dispatch_outgoing(handler, backend, msg)

    assert status.status == MsgStatusValue.ERRORED
    with SessionLocal() as db:
        assert db.query(MsgStatus).one().status == "errored"
        log = db.query(ChannelLog).one()
        assert log.status_code == 503
        assert "503" in log.error


def test_dispatch_missing_id_written_as_errored(backend, stored_channel):
    handler, _ = handler_for(backend, lambda request: httpx.Response(200, json=[{}]))
    msg = backend.new_outgoing_msg(stored_channel, URN("tel", "+15551234567"), "Hello")

    status = dispatch_outgoing(handler, backend, msg)

    assert status.status == MsgStatusValue.ERRORED
    with SessionLocal() as db:
        assert db.query(MsgStatus).one().status == "errored"
        assert "no external id returned in body" in db.query(ChannelLog).one().error


def test_dispatch_configuration_error_writes_nothing(backend, fresh_db):
    with SessionLocal() as db:
        channel = create_channel(db, channel_type="BM", address="2020", config={"username": "u"})
    handler, transport = handler_for(backend, lambda request: httpx.Response(200, json=[{"id": "1"}]))
    msg = backend.new_outgoing_msg(channel, URN("tel", "+15551234567"), "Hello")

    with pytest.raises(ConfigurationError):
        dispatch_outgoing(handler, backend, msg)

    assert transport.requests == []
    with SessionLocal() as db:
        assert db.query(MsgStatus).count() == 0
