"""
Pydantic schemas for webhook validation and API responses.

This module contains:
- Form models for the vendor's webhook callbacks (field constraints)
- Response models for webhook acknowledgements and errors
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError


# =============================================================================
# Webhook Form Models
# =============================================================================

class ReceiveForm(BaseModel):
    """
    Inbound SMS pushed by Blackmyna.

    All three fields are required and must be non-empty.
    """
    to: str = Field(..., min_length=1, description="Channel address the SMS was sent to")
    text: str = Field(..., min_length=1, description="Message body")
    # 'from' is a reserved word in Python, so we use alias
    from_number: str = Field(..., alias="from", min_length=1, description="Sender phone number")

    model_config = {"populate_by_name": True}


class StatusForm(BaseModel):
    """
    Delivery report pushed by Blackmyna.

    - id: vendor message id returned when the message was sent
    - status: vendor status code (1, 2, 8 or 16)
    """
    id: str = Field(..., min_length=1, description="Vendor message id")
    status: int = Field(..., description="Vendor status code")

    model_config = {"str_strip_whitespace": True}

    @field_validator("status")
    @classmethod
    def status_present(cls, value: int) -> int:
        # 0 is the unset value, reported the same as an absent field
        if value == 0:
            raise PydanticCustomError("missing", "Field required")
        return value


# =============================================================================
# Response Models
# =============================================================================

class MsgReceipt(BaseModel):
    """Describes a message accepted from the vendor."""
    type: Literal["msg"] = "msg"
    channel_uuid: str
    msg_uuid: str
    text: str
    urn: str
    received_on: str


class StatusReceipt(BaseModel):
    """Describes a status update accepted from the vendor."""
    type: Literal["status"] = "status"
    channel_uuid: str
    status: str
    external_id: str


class ErrorEntry(BaseModel):
    type: Literal["error"] = "error"
    error: str


class MsgAcceptedResponse(BaseModel):
    message: str = Field(default="Message Accepted")
    data: list[MsgReceipt] = Field(default_factory=list)


class StatusAcceptedResponse(BaseModel):
    message: str = Field(default="Status Update Accepted")
    data: list[StatusReceipt] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Response model for rejected webhook calls."""
    message: str = Field(default="Error")
    data: list[ErrorEntry] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
