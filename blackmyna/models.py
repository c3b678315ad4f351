"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For the canonical types handed to and from the handler, see domain.py.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, Text

from blackmyna.storage import Base


class Channel(Base):
    """
    Channel configuration, read-only for the adapter.

    Table: channels
    config holds the credentials as a JSON object (username, password, api_key).
    """
    __tablename__ = "channels"

    uuid = Column(String, primary_key=True, index=True)
    channel_type = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")
    address = Column(String, nullable=False)
    config = Column(Text, nullable=False, default="{}")
    is_active = Column(Boolean, nullable=False, default=True)


class Message(Base):
    """
    Messages in both directions.

    Table: messages
    direction: "I" incoming, "O" outgoing
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String, nullable=False, unique=True, index=True)
    channel_uuid = Column(String, nullable=False, index=True)
    direction = Column(String(1), nullable=False)
    urn = Column(String, nullable=False, index=True)
    text = Column(Text, nullable=False, default="")
    attachments = Column(Text, nullable=False, default="[]")
    status = Column(String, nullable=True)
    external_id = Column(String, nullable=True, index=True)
    created_at = Column(String, nullable=False)  # Server time ISO-8601
    modified_at = Column(String, nullable=False)


class MsgStatus(Base):
    """
    Latest known status per message.

    Table: msg_statuses
    A row is found by (channel_uuid, msg_id) for our sends or by
    (channel_uuid, external_id) for vendor callbacks; re-delivered
    callbacks update the same row.
    """
    __tablename__ = "msg_statuses"
    __table_args__ = (
        CheckConstraint("msg_id IS NOT NULL OR external_id IS NOT NULL", name="ck_status_has_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    channel_uuid = Column(String, nullable=False, index=True)
    msg_id = Column(Integer, nullable=True, index=True)
    external_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False)
    created_at = Column(String, nullable=False)
    modified_at = Column(String, nullable=False)


class ChannelLog(Base):
    """
    Audit trail of exchanges with the vendor.

    Table: channel_logs
    """
    __tablename__ = "channel_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    channel_uuid = Column(String, nullable=False, index=True)
    msg_id = Column(Integer, nullable=True, index=True)
    description = Column(String, nullable=False)
    method = Column(String, nullable=False, default="")
    url = Column(String, nullable=False, default="")
    request = Column(Text, nullable=False, default="")
    response = Column(Text, nullable=False, default="")
    status_code = Column(Integer, nullable=False, default=0)
    elapsed_ms = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=False, default="")
    created_at = Column(String, nullable=False)
