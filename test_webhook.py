"""
Tests for the Blackmyna webhook endpoints.

Tests cover:
- Inbound SMS accepted via POST body and GET query string
- Missing/empty fields rejected with nothing written (400)
- Delivery reports mapped to canonical statuses
- Unknown status codes rejected with nothing written (400)
- Re-delivered delivery reports (idempotency)
- Unknown channels (404), health and metrics routes
"""

import pytest
from fastapi.testclient import TestClient

from blackmyna.domain import MsgStatusValue
from blackmyna.main import app
from blackmyna.models import Message, MsgStatus
from blackmyna.storage import SessionLocal, SQLBackend, create_channel
from blackmyna.urns import URN

from conftest import CHANNEL_UUID, CREDENTIALS


RECEIVE_URL = f"/c/bm/{CHANNEL_UUID}/receive"
STATUS_URL = f"/c/bm/{CHANNEL_UUID}/status"


@pytest.fixture(scope="function")
def client(fresh_db):
    """Create test client with a fresh database holding one BM channel."""
    with SessionLocal() as db:
        create_channel(
            db,
            channel_type="BM",
            address="2020",
            country="US",
            name="Blackmyna Test",
            config=CREDENTIALS,
            channel_uuid=CHANNEL_UUID,
        )

    with TestClient(app) as test_client:
        yield test_client


def count_rows(model) -> int:
    with SessionLocal() as db:
        return db.query(model).count()


class TestReceive:
    """Test inbound SMS webhooks."""

    def test_receive_post_creates_message(self, client):
        """Test the canonical inbound scenario end to end."""
        response = client.post(RECEIVE_URL, data={"from": "15551234567", "text": "Hello", "to": "8080"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Message Accepted"
        assert len(body["data"]) == 1
        assert body["data"][0]["type"] == "msg"
        assert body["data"][0]["urn"] == "tel:+15551234567"
        assert body["data"][0]["text"] == "Hello"
        assert body["data"][0]["channel_uuid"] == CHANNEL_UUID

        with SessionLocal() as db:
            messages = db.query(Message).all()
            assert len(messages) == 1
            assert messages[0].urn == "tel:+15551234567"
            assert messages[0].text == "Hello"
            assert messages[0].direction == "I"
            assert messages[0].channel_uuid == CHANNEL_UUID

    def test_receive_get_query_string(self, client):
        """Test the vendor's GET style callback."""
        response = client.get(RECEIVE_URL, params={"from": "5551234567", "text": "Hi there", "to": "2020"})

        assert response.status_code == 200
        assert response.json()["data"][0]["urn"] == "tel:+15551234567"
        assert count_rows(Message) == 1

    def test_receive_response_has_request_id(self, client):
        response = client.post(RECEIVE_URL, data={"from": "15551234567", "text": "Hello", "to": "8080"})
        assert "X-Request-ID" in response.headers

    @pytest.mark.parametrize("missing", ["from", "text", "to"])
    def test_receive_missing_field(self, client, missing):
        """Test that each field is required and nothing is written without it."""
        form = {"from": "15551234567", "text": "Hello", "to": "8080"}
        del form[missing]

        response = client.post(RECEIVE_URL, data=form)

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Error"
        assert body["data"][0]["type"] == "error"
        assert f"'{missing}'" in body["data"][0]["error"]
        assert count_rows(Message) == 0

    def test_receive_empty_text(self, client):
        response = client.post(RECEIVE_URL, data={"from": "15551234567", "text": "", "to": "8080"})

        assert response.status_code == 400
        assert "'text' is required" in response.json()["data"][0]["error"]
        assert count_rows(Message) == 0

    def test_receive_unknown_channel(self, client):
        response = client.post(
            "/c/bm/00000000-0000-0000-0000-000000000000/receive",
            data={"from": "15551234567", "text": "Hello", "to": "8080"},
        )

        assert response.status_code == 404
        assert "channel not found" in response.json()["data"][0]["error"]
        assert count_rows(Message) == 0


class TestStatus:
    """Test delivery report webhooks."""

    def test_status_sent(self, client):
        """Test the canonical status scenario end to end."""
        response = client.post(STATUS_URL, data={"id": "abc123", "status": "8"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Status Update Accepted"
        assert body["data"][0] == {
            "type": "status",
            "channel_uuid": CHANNEL_UUID,
            "status": "sent",
            "external_id": "abc123",
        }

        with SessionLocal() as db:
            rows = db.query(MsgStatus).all()
            assert len(rows) == 1
            assert rows[0].external_id == "abc123"
            assert rows[0].status == "sent"
            assert rows[0].msg_id is None

    @pytest.mark.parametrize("code,expected", [("1", "delivered"), ("2", "failed"), ("8", "sent"), ("16", "failed")])
    def test_status_mapping(self, client, code, expected):
        response = client.get(STATUS_URL, params={"id": "ext-1", "status": code})

        assert response.status_code == 200
        assert response.json()["data"][0]["status"] == expected

    def test_status_unknown_code(self, client):
        """Test that unknown codes are rejected and nothing is written."""
        response = client.post(STATUS_URL, data={"id": "abc123", "status": "99"})

        assert response.status_code == 400
        error = response.json()["data"][0]["error"]
        assert "'99'" in error
        assert "1, 2, 8 or 16" in error
        assert count_rows(MsgStatus) == 0

    def test_status_not_an_integer(self, client):
        response = client.post(STATUS_URL, data={"id": "abc123", "status": "delivered"})

        assert response.status_code == 400
        assert "'status' must be an integer" in response.json()["data"][0]["error"]
        assert count_rows(MsgStatus) == 0

    @pytest.mark.parametrize("form", [{"status": "1"}, {"id": "abc123"}, {"id": "", "status": "1"}])
    def test_status_missing_field(self, client, form):
        response = client.post(STATUS_URL, data=form)

        assert response.status_code == 400
        assert count_rows(MsgStatus) == 0

    def test_status_zero_is_missing(self, client):
        """Test that a zero status is reported as a missing field, not an unknown code."""
        response = client.post(STATUS_URL, data={"id": "abc123", "status": "0"})

        assert response.status_code == 400
        assert response.json()["data"][0]["error"] == "field 'status' is required"
        assert count_rows(MsgStatus) == 0

    def test_status_redelivery_is_idempotent(self, client):
        """Test that a re-delivered report overwrites instead of duplicating."""
        for _ in range(2):
            response = client.post(STATUS_URL, data={"id": "abc123", "status": "8"})
            assert response.status_code == 200

        response = client.post(STATUS_URL, data={"id": "abc123", "status": "1"})
        assert response.status_code == 200

        with SessionLocal() as db:
            rows = db.query(MsgStatus).all()
            assert len(rows) == 1
            assert rows[0].status == "delivered"

    def test_status_updates_sent_message(self, client):
        """Test that a report for a wired message updates that message."""
        backend = SQLBackend()
        channel = backend.get_channel("BM", CHANNEL_UUID)
        msg = backend.new_outgoing_msg(channel, URN("tel", "+15551234567"), "Hi")

        wired = backend.new_status_for_id(channel, msg.id, MsgStatusValue.WIRED)
        wired.set_external_id("ext-42")
        backend.write_status(wired)

        response = client.post(STATUS_URL, data={"id": "ext-42", "status": "1"})
        assert response.status_code == 200

        with SessionLocal() as db:
            row = db.query(Message).filter(Message.id == msg.id).one()
            assert row.status == "delivered"
            assert row.external_id == "ext-42"
            statuses = db.query(MsgStatus).all()
            assert len(statuses) == 1
            assert statuses[0].msg_id == msg.id
            assert statuses[0].status == "delivered"


class TestServiceRoutes:

    def test_health_live(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_ready(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_metrics_count_webhook_outcomes(self, client):
        client.post(STATUS_URL, data={"id": "abc123", "status": "99"})

        response = client.get("/metrics")
        assert response.status_code == 200
        assert 'webhook_requests_total{handler="status",result="unknown_status"}' in response.text
        assert "/c/bm/{uuid}/status" in response.text
