import json
import logging
import uuid as uuid_lib
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from blackmyna import domain
from blackmyna.config import settings
from blackmyna.errors import ChannelNotFoundError
from blackmyna.urns import URN

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()

REQUIRED_TABLES = ("channels", "messages", "msg_statuses", "channel_logs")


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from blackmyna import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and all tables exist, False otherwise.
    """
    from sqlalchemy import inspect

    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        existing = set(inspect(engine).get_table_names())
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if missing:
            logger.error(f"Database schema not applied, missing tables: {missing}")
            return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Channel Repository Functions
# =============================================================================

def create_channel(
    db: Session,
    channel_type: str,
    address: str,
    country: str = "",
    name: str = "",
    config: Optional[Mapping[str, str]] = None,
    channel_uuid: Optional[str] = None,
) -> domain.Channel:
    """Store a new channel and return its canonical form."""
    from blackmyna.models import Channel

    row = Channel(
        uuid=channel_uuid or str(uuid_lib.uuid4()),
        channel_type=channel_type,
        name=name,
        country=country,
        address=address,
        config=json.dumps(dict(config or {})),
        is_active=True,
    )
    db.add(row)
    db.commit()
    logger.info(f"Channel created: uuid={row.uuid}, type={channel_type}")
    return channel_from_row(row)


def channel_from_row(row) -> domain.Channel:
    return domain.Channel(
        uuid=row.uuid,
        channel_type=row.channel_type,
        address=row.address,
        country=row.country or "",
        name=row.name or "",
        config=json.loads(row.config or "{}"),
    )


# =============================================================================
# Backend
# =============================================================================

class SQLBackend:
    """
    Backend implementation over the SQLAlchemy session factory.

    Each write runs in its own session and commits or rolls back as a
    unit, so a failed write leaves nothing behind.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get_channel(self, channel_type: str, channel_uuid: str) -> domain.Channel:
        """
        Raises:
            ChannelNotFoundError: no active channel of that type and UUID
        """
        from blackmyna.models import Channel

        with self.session_factory() as db:
            row = (
                db.query(Channel)
                .filter(
                    Channel.uuid == channel_uuid,
                    Channel.channel_type == channel_type,
                    Channel.is_active.is_(True),
                )
                .first()
            )
            if row is None:
                raise ChannelNotFoundError(channel_uuid)
            return channel_from_row(row)

    # -- messages -------------------------------------------------------------

    def new_incoming_msg(self, channel: domain.Channel, urn: URN, text: str) -> domain.IncomingMessage:
        return domain.IncomingMessage(
            uuid=str(uuid_lib.uuid4()),
            channel=channel,
            urn=urn,
            text=text,
        )

    def write_msg(self, msg: domain.IncomingMessage) -> domain.IncomingMessage:
        """Persist an incoming message, returning it with its database id."""
        from blackmyna.models import Message

        received = msg.received_on.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        with self.session_factory() as db:
            row = Message(
                uuid=msg.uuid,
                channel_uuid=msg.channel.uuid,
                direction="I",
                urn=str(msg.urn),
                text=msg.text,
                created_at=received,
                modified_at=received,
            )
            try:
                db.add(row)
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error(f"Failed to write message {msg.uuid}: {e}")
                raise
            logger.debug(f"Message written: id={row.id}, uuid={msg.uuid}")
            return domain.IncomingMessage(
                uuid=msg.uuid,
                channel=msg.channel,
                urn=msg.urn,
                text=msg.text,
                received_on=msg.received_on,
                id=row.id,
            )

    def new_outgoing_msg(self, channel: domain.Channel, urn: URN, text: str,
                         attachments: Optional[List[str]] = None) -> domain.OutgoingMessage:
        """Queue an outgoing message row and return it ready for sending."""
        from blackmyna.models import Message

        created = now_iso()
        with self.session_factory() as db:
            row = Message(
                uuid=str(uuid_lib.uuid4()),
                channel_uuid=channel.uuid,
                direction="O",
                urn=str(urn),
                text=text,
                attachments=json.dumps(list(attachments or [])),
                created_at=created,
                modified_at=created,
            )
            db.add(row)
            db.commit()
            return domain.OutgoingMessage(
                id=row.id,
                uuid=row.uuid,
                channel=channel,
                urn=urn,
                text=text,
                attachments=list(attachments or []),
            )

    # -- statuses -------------------------------------------------------------

    def new_status_for_external_id(self, channel: domain.Channel, external_id: str,
                                   status: domain.MsgStatusValue) -> domain.MsgStatus:
        return domain.MsgStatus(channel=channel, key=domain.ExternalID(external_id), status=status)

    def new_status_for_id(self, channel: domain.Channel, msg_id: int,
                          status: domain.MsgStatusValue) -> domain.MsgStatus:
        return domain.MsgStatus(channel=channel, key=domain.InternalID(msg_id), status=status)

    def write_status(self, status: domain.MsgStatus) -> None:
        """
        Record a status, overwriting any earlier status for the same key.

        Also updates the matching message row when one exists, and stores
        the channel logs attached to the status.
        """
        from blackmyna.models import ChannelLog, Message, MsgStatus

        modified = now_iso()
        channel_uuid = status.channel.uuid
        with self.session_factory() as db:
            try:
                query = db.query(MsgStatus).filter(MsgStatus.channel_uuid == channel_uuid)
                msg_query = db.query(Message).filter(Message.channel_uuid == channel_uuid)
                if isinstance(status.key, domain.InternalID):
                    query = query.filter(MsgStatus.msg_id == status.key.value)
                    msg_query = msg_query.filter(Message.id == status.key.value)
                else:
                    query = query.filter(MsgStatus.external_id == status.key.value)
                    msg_query = msg_query.filter(Message.external_id == status.key.value)

                row = query.first()
                if row is None:
                    row = MsgStatus(channel_uuid=channel_uuid, created_at=modified)
                    db.add(row)
                row.msg_id = status.msg_id if status.msg_id is not None else row.msg_id
                row.external_id = status.external_id or row.external_id
                row.status = status.status.value
                row.modified_at = modified

                msg = msg_query.first()
                if msg is not None:
                    msg.status = status.status.value
                    msg.external_id = status.external_id or msg.external_id
                    msg.modified_at = modified

                for log in status.logs:
                    db.add(ChannelLog(
                        channel_uuid=log.channel_uuid,
                        msg_id=log.msg_id,
                        description=log.description,
                        method=log.method,
                        url=log.url,
                        request=log.request,
                        response=log.response,
                        status_code=log.status_code,
                        elapsed_ms=log.elapsed_ms,
                        error=log.error,
                        created_at=log.created_on.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
                    ))
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error(f"Failed to write status {status.key}: {e}")
                raise
        logger.debug(f"Status written: key={status.key}, status={status.status.value}")
