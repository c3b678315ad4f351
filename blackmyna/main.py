import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import FastAPI, Response, Request, Depends, status
from fastapi.responses import JSONResponse

from blackmyna.config import settings
from blackmyna.errors import ChannelNotFoundError, UnknownStatusError, ValidationError
from blackmyna.handler import CHANNEL_TYPE, BlackmynaHandler
from blackmyna.logging_utils import setup_logging, RequestLoggingMiddleware, log_webhook_data
from blackmyna.metrics import record_webhook_outcome, get_metrics, get_metrics_content_type
from blackmyna.schemas import (
    ErrorEntry,
    ErrorResponse,
    HealthResponse,
    MsgAcceptedResponse,
    MsgReceipt,
    StatusAcceptedResponse,
    StatusReceipt,
)
from blackmyna.storage import SQLBackend, init_db, check_db_health
from blackmyna.validation import read_form


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    - Shutdown: Close the vendor HTTP client
    """
    init_db()
    yield
    if get_handler.cache_info().currsize:
        get_handler().client.close()
        get_handler.cache_clear()


app = FastAPI(
    title="Blackmyna Channel Adapter",
    description="Translates Blackmyna SMS webhooks and sends to canonical messages and statuses",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@lru_cache()
def get_backend() -> SQLBackend:
    return SQLBackend()


@lru_cache()
def get_handler() -> BlackmynaHandler:
    return BlackmynaHandler(get_backend())


def error_response(status_code: int, error: str) -> JSONResponse:
    body = ErrorResponse(data=[ErrorEntry(error=error)])
    return JSONResponse(status_code=status_code, content=body.model_dump())


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the DB is reachable and the
    schema is applied, otherwise 503 (Service Unavailable).
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Webhook Routes
# =============================================================================

@app.api_route(
    "/c/bm/{channel_uuid}/receive",
    methods=["GET", "POST"],
    response_model=MsgAcceptedResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or empty field"},
        404: {"model": ErrorResponse, "description": "Unknown channel"},
    }
)
async def receive_message(
    channel_uuid: str,
    request: Request,
    backend: SQLBackend = Depends(get_backend),
    handler: BlackmynaHandler = Depends(get_handler),
):
    """
    Accept an incoming SMS from Blackmyna.

    Form fields (query string or body): from, text, to - all required.
    """
    form = await read_form(request)
    logger.debug(f"Receive webhook for channel {channel_uuid}: fields={sorted(form)}")

    try:
        channel = backend.get_channel(CHANNEL_TYPE, channel_uuid)
        msg = handler.receive_message(channel, form)
    except ChannelNotFoundError as e:
        record_webhook_outcome("receive", "channel_not_found")
        log_webhook_data(request, channel_uuid, "receive", "channel_not_found")
        return error_response(status.HTTP_404_NOT_FOUND, str(e))
    except ValidationError as e:
        logger.warning(f"Invalid receive webhook: {e}")
        record_webhook_outcome("receive", "validation_error")
        log_webhook_data(request, channel_uuid, "receive", "validation_error")
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Failed to write message for channel {channel_uuid}: {e}")
        record_webhook_outcome("receive", "error")
        log_webhook_data(request, channel_uuid, "receive", "error")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "error writing message")

    record_webhook_outcome("receive", "accepted")
    log_webhook_data(request, channel_uuid, "receive", "accepted", msg_uuid=msg.uuid)

    return MsgAcceptedResponse(data=[
        MsgReceipt(
            channel_uuid=channel.uuid,
            msg_uuid=msg.uuid,
            text=msg.text,
            urn=str(msg.urn),
            received_on=msg.received_on.isoformat(),
        )
    ])


@app.api_route(
    "/c/bm/{channel_uuid}/status",
    methods=["GET", "POST"],
    response_model=StatusAcceptedResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid form or unknown status code"},
        404: {"model": ErrorResponse, "description": "Unknown channel"},
    }
)
async def status_message(
    channel_uuid: str,
    request: Request,
    backend: SQLBackend = Depends(get_backend),
    handler: BlackmynaHandler = Depends(get_handler),
):
    """
    Accept a delivery report from Blackmyna.

    Form fields: id (vendor message id), status (1, 2, 8 or 16).
    Unknown status codes are rejected so they surface instead of being dropped.
    """
    form = await read_form(request)
    logger.debug(f"Status webhook for channel {channel_uuid}: id={form.get('id')}, status={form.get('status')}")

    try:
        channel = backend.get_channel(CHANNEL_TYPE, channel_uuid)
        msg_status = handler.status_message(channel, form)
    except ChannelNotFoundError as e:
        record_webhook_outcome("status", "channel_not_found")
        log_webhook_data(request, channel_uuid, "status", "channel_not_found")
        return error_response(status.HTTP_404_NOT_FOUND, str(e))
    except UnknownStatusError as e:
        logger.warning(f"Rejected status webhook: {e}")
        record_webhook_outcome("status", "unknown_status")
        log_webhook_data(request, channel_uuid, "status", "unknown_status", external_id=form.get("id"))
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except ValidationError as e:
        logger.warning(f"Invalid status webhook: {e}")
        record_webhook_outcome("status", "validation_error")
        log_webhook_data(request, channel_uuid, "status", "validation_error")
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Failed to write status for channel {channel_uuid}: {e}")
        record_webhook_outcome("status", "error")
        log_webhook_data(request, channel_uuid, "status", "error")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "error writing status")

    record_webhook_outcome("status", "accepted")
    log_webhook_data(request, channel_uuid, "status", "accepted", external_id=msg_status.external_id)

    return StatusAcceptedResponse(data=[
        StatusReceipt(
            channel_uuid=channel.uuid,
            status=msg_status.status.value,
            external_id=msg_status.external_id,
        )
    ])


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
