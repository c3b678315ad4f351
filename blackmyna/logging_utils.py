import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from blackmyna.metrics import record_http_request


# Context variable to store request_id for the current request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_ctx.get()


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter to ensure ISO-8601 timestamps and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        if 'request_id' not in log_record:
            req_id = request_id_ctx.get()
            if req_id:
                log_record['request_id'] = req_id


def setup_logging(log_level: str = "INFO"):
    """
    Setup structured JSON logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger = logging.getLogger()
    logger.setLevel(log_level.upper())
    logger.handlers = []

    json_handler = logging.StreamHandler(sys.stdout)
    json_handler.setFormatter(CustomJsonFormatter('%(ts)s %(level)s %(name)s %(message)s'))
    logger.addHandler(json_handler)

    # Route Uvicorn through the same JSON handler
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(json_handler)
        uvicorn_logger.propagate = False

    # our middleware logs every request already
    logging.getLogger("uvicorn.access").disabled = True

    # httpx logs each request at INFO, channel logs already cover it
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests in structured JSON format.

    Log keys: ts, level, request_id, method, path, status, latency_ms.

    For webhook requests, also includes:
    - channel_uuid: channel the callback was addressed to
    - handler: receive or status
    - result: accepted, validation_error, unknown_status, channel_not_found, error
    - msg_uuid / external_id: when known
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        start_time = time.time()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            latency_seconds = time.time() - start_time

            # exclude /metrics to avoid self-instrumentation noise
            if request.url.path != "/metrics":
                record_http_request(
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    latency_seconds=latency_seconds
                )

            log_data = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round(latency_seconds * 1000, 2),
            }
            if hasattr(request.state, "webhook_log_data"):
                log_data.update(request.state.webhook_log_data)

            logger = logging.getLogger("blackmyna.requests")
            if response.status_code >= 500:
                logger.error("Request completed", extra=log_data)
            elif response.status_code >= 400:
                logger.warning("Request completed", extra=log_data)
            else:
                logger.info("Request completed", extra=log_data)

            return response
        finally:
            request_id_ctx.reset(token)


def log_webhook_data(request: Request, channel_uuid: str, handler: str, result: str,
                     msg_uuid: Optional[str] = None, external_id: Optional[str] = None):
    """
    Attach webhook-specific logging data to the request state.
    This data will be included in the request log by the middleware.
    """
    webhook_data = {
        "channel_uuid": channel_uuid,
        "handler": handler,
        "result": result,
    }
    if msg_uuid is not None:
        webhook_data["msg_uuid"] = msg_uuid
    if external_id is not None:
        webhook_data["external_id"] = external_id

    request.state.webhook_log_data = webhook_data
