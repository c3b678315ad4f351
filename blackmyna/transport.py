"""
Outbound HTTP transport for vendor calls.

A single attempt per call: retry policy belongs to the engine. Timeouts are
enforced by the httpx client and surface as TransportError like any other
network failure or non-2xx reply.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from blackmyna.config import settings
from blackmyna.errors import TransportError

logger = logging.getLogger(__name__)

REDACTED_HEADERS = {"authorization"}


@dataclass
class RequestResponse:
    """Raw trace of one HTTP exchange, kept for channel logs."""

    method: str
    url: str
    request: str
    status_code: int = 0
    response: str = ""
    body: str = ""
    elapsed_ms: int = 0


def create_http_client(timeout_seconds: Optional[float] = None,
                       transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """Build the client used for vendor calls with the configured timeout."""
    timeout = timeout_seconds if timeout_seconds is not None else settings.BM_REQUEST_TIMEOUT_SECONDS
    return httpx.Client(timeout=timeout, transport=transport)


def dump_request(request: httpx.Request) -> str:
    """Render a request as raw HTTP text, with credentials masked."""
    lines = [f"{request.method} {request.url.raw_path.decode('ascii')} HTTP/1.1"]
    for name, value in request.headers.items():
        if name.lower() in REDACTED_HEADERS:
            value = "****************"
        lines.append(f"{name}: {value}")
    body = request.content.decode("utf-8", errors="replace")
    return "\r\n".join(lines) + "\r\n\r\n" + body


def dump_response(response: httpx.Response) -> str:
    lines = [f"HTTP/1.1 {response.status_code} {response.reason_phrase}"]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    return "\r\n".join(lines) + "\r\n\r\n" + response.text


def make_http_request(client: httpx.Client, request: httpx.Request,
                      auth: Optional[httpx.Auth] = None) -> RequestResponse:
    """
    Send a single request and capture the exchange.

    Returns:
        RequestResponse for a 2xx reply

    Raises:
        TransportError: on connection failure, timeout or non-2xx reply;
            the exchange captured so far is on `request_response`
    """
    start = time.monotonic()
    try:
        response = client.send(request, auth=auth)
    except httpx.HTTPError as e:
        rr = RequestResponse(
            method=request.method,
            url=str(request.url),
            request=dump_request(request),
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
        logger.warning(f"Request to {request.url.host} failed: {e}")
        raise TransportError(str(e) or type(e).__name__, rr) from e

    # auth flows add headers on the request the client actually sent
    sent = response.request
    rr = RequestResponse(
        method=sent.method,
        url=str(sent.url),
        request=dump_request(sent),
        status_code=response.status_code,
        response=dump_response(response),
        body=response.text,
        elapsed_ms=int((time.monotonic() - start) * 1000),
    )

    if not response.is_success:
        logger.warning(f"Request to {sent.url.host} returned status {response.status_code}")
        raise TransportError(f"received non 200 status: {response.status_code}", rr)

    logger.debug(f"Request to {sent.url.host} completed in {rr.elapsed_ms}ms")
    return rr
