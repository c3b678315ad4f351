"""
Error taxonomy for the Blackmyna channel adapter.

- ValidationError / UnknownStatusError: rejected webhook input, answered with 4xx
- ConfigurationError: channel is missing a credential, send aborted before any I/O
- TransportError: network failure, timeout or non-2xx reply from the vendor
- ResponseFormatError: vendor accepted the send but returned no external id
"""

from typing import Optional, Sequence


class AdapterError(Exception):
    """Base class for all adapter errors."""


class ChannelNotFoundError(AdapterError):
    """No active channel of our type exists for the requested UUID."""

    def __init__(self, channel_uuid: str):
        super().__init__(f"channel not found: {channel_uuid}")
        self.channel_uuid = channel_uuid


class ValidationError(AdapterError):
    """Webhook payload is missing fields or carries values of the wrong type."""

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class UnknownStatusError(AdapterError):
    """Vendor sent a status code outside the known mapping."""

    def __init__(self, status: int, accepted: Sequence[int]):
        accepted = sorted(accepted)
        listed = ", ".join(str(code) for code in accepted[:-1])
        super().__init__(
            f"unknown status '{status}', must be one of {listed} or {accepted[-1]}"
        )
        self.status = status
        self.accepted = accepted


class ConfigurationError(AdapterError):
    """Channel configuration lacks a value required for sending."""

    def __init__(self, field: str, channel_type: str = "BM"):
        super().__init__(f"no {field} set for {channel_type} channel")
        self.field = field


class TransportError(AdapterError):
    """The outbound request failed or the vendor replied with a non-2xx status."""

    def __init__(self, message: str, request_response=None):
        super().__init__(message)
        self.request_response = request_response


class ResponseFormatError(AdapterError):
    """Vendor replied with success but the body could not be correlated."""

    def __init__(self, message: str, status=None):
        super().__init__(message)
        self.status = status
