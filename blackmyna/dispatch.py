"""
Engine-side glue for outbound messages.

Runs a single send attempt and persists whatever status it produced.
Retrying `errored` messages is left to the engine's own scheduling.
"""

import logging

from blackmyna.domain import Backend, MsgStatus, OutgoingMessage
from blackmyna.errors import ConfigurationError, ResponseFormatError
from blackmyna.handler import BlackmynaHandler
from blackmyna.metrics import record_send_outcome

logger = logging.getLogger(__name__)


def dispatch_outgoing(handler: BlackmynaHandler, backend: Backend, msg: OutgoingMessage) -> MsgStatus:
    """
    Send `msg` and write the resulting status.

    Returns:
        The written status: `wired` on success, `errored` otherwise

    Raises:
        ConfigurationError: channel cannot send, nothing was written
    """
    try:
        status = handler.send_msg(msg)
    except ConfigurationError as e:
        logger.error(f"Cannot send message {msg.id}: {e}")
        record_send_outcome("config_error")
        raise
    except ResponseFormatError as e:
        logger.error(f"Vendor response for message {msg.id} not understood: {e}")
        record_send_outcome("response_format_error")
        status = e.status
        backend.write_status(status)
        return status

    backend.write_status(status)
    record_send_outcome(status.status.value)
    logger.info(f"Message {msg.id} dispatched with status {status.status.value}")
    return status
