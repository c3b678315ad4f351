"""
Blackmyna channel handler.

Translates between Blackmyna's HTTP API and the engine's canonical
messages and statuses:

- receive_message: inbound SMS webhook -> IncomingMessage
- status_message: delivery report webhook -> MsgStatus keyed by vendor id
- send_msg: OutgoingMessage -> vendor send request -> MsgStatus keyed by our id
"""

import json
import logging
from typing import Any, Mapping, Optional

import httpx

from blackmyna.config import settings
from blackmyna.domain import (
    CONFIG_API_KEY,
    CONFIG_PASSWORD,
    CONFIG_USERNAME,
    Backend,
    Channel,
    ChannelLog,
    IncomingMessage,
    MsgStatus,
    MsgStatusValue,
    OutgoingMessage,
    text_and_attachments,
)
from blackmyna.errors import ConfigurationError, ResponseFormatError, TransportError, UnknownStatusError
from blackmyna.schemas import ReceiveForm, StatusForm
from blackmyna.transport import create_http_client, make_http_request
from blackmyna.urns import new_tel_urn_for_country
from blackmyna.validation import decode_and_validate_form

logger = logging.getLogger(__name__)

CHANNEL_TYPE = "BM"
CHANNEL_NAME = "Blackmyna"

# Vendor status codes. Adding a code here is the only way to accept it.
STATUS_MAPPING = {
    1: MsgStatusValue.DELIVERED,
    2: MsgStatusValue.FAILED,
    8: MsgStatusValue.SENT,
    16: MsgStatusValue.FAILED,
}


def parse_external_id(body: str) -> str:
    """Return the `id` of the first element of a JSON array body, or ""."""
    try:
        payload = json.loads(body)
    except ValueError:
        return ""
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return ""
    external_id = payload[0].get("id")
    return external_id if isinstance(external_id, str) else ""


class BlackmynaHandler:
    """Request-scoped translator; holds no state besides its collaborators."""

    channel_type = CHANNEL_TYPE
    name = CHANNEL_NAME

    def __init__(self, backend: Backend, client: Optional[httpx.Client] = None,
                 send_url: Optional[str] = None):
        self.backend = backend
        self.client = client or create_http_client()
        self.send_url = send_url or settings.BM_SEND_URL

    def receive_message(self, channel: Channel, form: Mapping[str, Any]) -> IncomingMessage:
        """
        Handle an inbound SMS webhook.

        Raises:
            ValidationError: if `to`, `text` or `from` is missing or empty
        """
        bm_msg = decode_and_validate_form(ReceiveForm, form)

        urn = new_tel_urn_for_country(bm_msg.from_number, channel.country)
        msg = self.backend.new_incoming_msg(channel, urn, bm_msg.text)
        msg = self.backend.write_msg(msg)

        logger.info(
            "Message received",
            extra={"channel_uuid": channel.uuid, "msg_uuid": msg.uuid, "urn": str(urn)},
        )
        return msg

    def status_message(self, channel: Channel, form: Mapping[str, Any]) -> MsgStatus:
        """
        Handle a delivery report webhook.

        Raises:
            ValidationError: if `id` is missing or `status` is not an integer
            UnknownStatusError: if `status` is not a known vendor code
        """
        bm_status = decode_and_validate_form(StatusForm, form)

        msg_status = STATUS_MAPPING.get(bm_status.status)
        if msg_status is None:
            logger.warning(
                "Unknown status code",
                extra={"channel_uuid": channel.uuid, "external_id": bm_status.id, "vendor_status": bm_status.status},
            )
            raise UnknownStatusError(bm_status.status, STATUS_MAPPING.keys())

        status = self.backend.new_status_for_external_id(channel, bm_status.id, msg_status)
        self.backend.write_status(status)

        logger.info(
            "Status received",
            extra={"channel_uuid": channel.uuid, "external_id": bm_status.id, "status": msg_status.value},
        )
        return status

    def send_msg(self, msg: OutgoingMessage) -> MsgStatus:
        """
        Send a message through the vendor API.

        Transport failures are not raised: the returned status stays
        `errored` with the failure recorded in its channel log.

        Raises:
            ConfigurationError: if the channel lacks a credential; nothing is sent
            ResponseFormatError: if the vendor accepted the message without
                returning an id; the `errored` status is on `status`
        """
        channel = msg.channel
        username = channel.string_config_for_key(CONFIG_USERNAME, "")
        if not username:
            raise ConfigurationError(CONFIG_USERNAME, CHANNEL_TYPE)

        password = channel.string_config_for_key(CONFIG_PASSWORD, "")
        if not password:
            raise ConfigurationError(CONFIG_PASSWORD, CHANNEL_TYPE)

        # required by the channel setup, not part of the send request
        api_key = channel.string_config_for_key(CONFIG_API_KEY, "")
        if not api_key:
            raise ConfigurationError(CONFIG_API_KEY, CHANNEL_TYPE)

        form = {
            "address": msg.urn.path,
            "senderaddress": channel.address,
            "message": text_and_attachments(msg),
        }
        request = self.client.build_request(
            "POST",
            self.send_url,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        status = self.backend.new_status_for_id(channel, msg.id, MsgStatusValue.ERRORED)

        rr, err = None, None
        try:
            rr = make_http_request(self.client, request, auth=httpx.BasicAuth(username, password))
        except TransportError as e:
            rr, err = e.request_response, e

        status.add_log(
            ChannelLog.from_request_response("Message Sent", channel, msg.id, rr)
            .with_error("Message Send Error", err)
        )
        if err is not None:
            logger.warning(
                "Message send failed",
                extra={"channel_uuid": channel.uuid, "msg_id": msg.id, "error": str(err)},
            )
            return status

        external_id = parse_external_id(rr.body)
        if not external_id:
            err = ResponseFormatError("no external id returned in body", status=status)
            status.logs[-1].with_error("Message Send Error", err)
            logger.error(
                "Message sent without external id",
                extra={"channel_uuid": channel.uuid, "msg_id": msg.id, "response": rr.body},
            )
            raise err

        status.set_status(MsgStatusValue.WIRED)
        status.set_external_id(external_id)

        logger.info(
            "Message sent",
            extra={"channel_uuid": channel.uuid, "msg_id": msg.id, "external_id": external_id},
        )
        return status
