"""
Canonical, vendor-agnostic types shared with the messaging engine.

Channels, messages and statuses are plain dataclasses. The ORM rows that
persist them live in models.py and are mapped by storage.SQLBackend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Union

from blackmyna.urns import URN


CONFIG_USERNAME = "username"
CONFIG_PASSWORD = "password"
CONFIG_API_KEY = "api_key"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MsgStatusValue(str, Enum):
    """Canonical delivery status values."""

    WIRED = "wired"
    SENT = "sent"
    DELIVERED = "delivered"
    ERRORED = "errored"
    FAILED = "failed"


@dataclass(frozen=True)
class Channel:
    """Read-only per-tenant channel configuration."""

    uuid: str
    channel_type: str
    address: str
    country: str = ""
    name: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)

    def string_config_for_key(self, key: str, default: str = "") -> str:
        value = self.config.get(key)
        if value is None:
            return default
        return str(value)


@dataclass(frozen=True)
class IncomingMessage:
    uuid: str
    channel: Channel
    urn: URN
    text: str
    received_on: datetime = field(default_factory=utcnow)
    id: Optional[int] = None


@dataclass(frozen=True)
class OutgoingMessage:
    id: int
    channel: Channel
    urn: URN
    text: str
    uuid: str = ""
    attachments: List[str] = field(default_factory=list)


def split_attachment(attachment: str) -> tuple:
    """Split a "content/type:url" attachment into (content_type, url)."""
    parts = attachment.split(":", 1)
    if len(parts) < 2 or "/" not in parts[0]:
        return "", attachment
    return parts[0], parts[1]


def text_and_attachments(msg: OutgoingMessage) -> str:
    """Flatten message text and attachment URLs into a single SMS body."""
    buf = msg.text or ""
    for attachment in msg.attachments:
        _, url = split_attachment(attachment)
        if buf:
            buf += "\n"
        buf += url
    return buf


# =============================================================================
# Status correlation
# =============================================================================

@dataclass(frozen=True)
class InternalID:
    """Engine-assigned message id."""
    value: int


@dataclass(frozen=True)
class ExternalID:
    """Vendor-assigned message id."""
    value: str


CorrelationKey = Union[InternalID, ExternalID]


@dataclass
class ChannelLog:
    """Audit record of a single exchange with the vendor."""

    description: str
    channel_uuid: str
    msg_id: Optional[int] = None
    method: str = ""
    url: str = ""
    request: str = ""
    response: str = ""
    status_code: int = 0
    elapsed_ms: int = 0
    error: str = ""
    created_on: datetime = field(default_factory=utcnow)

    @classmethod
    def from_request_response(cls, description: str, channel: Channel,
                              msg_id: Optional[int], rr) -> "ChannelLog":
        if rr is None:
            return cls(description=description, channel_uuid=channel.uuid, msg_id=msg_id)
        return cls(
            description=description,
            channel_uuid=channel.uuid,
            msg_id=msg_id,
            method=rr.method,
            url=rr.url,
            request=rr.request,
            response=rr.response,
            status_code=rr.status_code,
            elapsed_ms=rr.elapsed_ms,
        )

    def with_error(self, description: str, err: Optional[BaseException]) -> "ChannelLog":
        if err is not None:
            self.error = f"{description}: {err}"
        return self


@dataclass
class MsgStatus:
    """
    Delivery status for one message.

    The correlation key is either the engine's id (outbound sends) or the
    vendor's id (status callbacks), never both. An external id learned from
    a successful send is kept separately so later callbacks can be matched.
    """

    channel: Channel
    key: CorrelationKey
    status: MsgStatusValue
    external_id: Optional[str] = None
    logs: List[ChannelLog] = field(default_factory=list)
    created_on: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not isinstance(self.key, (InternalID, ExternalID)):
            raise TypeError(f"invalid correlation key: {self.key!r}")
        self.status = MsgStatusValue(self.status)
        if isinstance(self.key, ExternalID):
            self.external_id = self.key.value

    @property
    def msg_id(self) -> Optional[int]:
        return self.key.value if isinstance(self.key, InternalID) else None

    def set_status(self, status: MsgStatusValue) -> None:
        self.status = MsgStatusValue(status)

    def set_external_id(self, external_id: str) -> None:
        self.external_id = external_id

    def add_log(self, log: ChannelLog) -> None:
        self.logs.append(log)


# =============================================================================
# Collaborator interfaces
# =============================================================================

class Backend(Protocol):
    """Durable store the adapter hands its messages and statuses to."""

    def new_incoming_msg(self, channel: Channel, urn: URN, text: str) -> IncomingMessage: ...

    def write_msg(self, msg: IncomingMessage) -> IncomingMessage: ...

    def new_status_for_external_id(self, channel: Channel, external_id: str,
                                   status: MsgStatusValue) -> MsgStatus: ...

    def new_status_for_id(self, channel: Channel, msg_id: int,
                          status: MsgStatusValue) -> MsgStatus: ...

    def write_status(self, status: MsgStatus) -> None: ...
