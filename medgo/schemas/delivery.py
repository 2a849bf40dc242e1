"""Delivery status and direct SMS schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class DeliveryStatusItem(BaseModel):
    """One channel's delivery state for one driver."""

    id: UUID
    channel: Literal["sms", "in_app"]
    driver_id: UUID | None
    driver_name: str
    status: Literal["pending", "delivered", "failed", "read"]
    accepted: bool = False
    phone: str | None = None
    error_message: str | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None


class DeliveryStatusResponse(BaseModel):
    """Combined SMS and in-app delivery view for a request."""

    request_id: UUID
    request_status: str
    accepted_driver_id: UUID | None
    items: list[DeliveryStatusItem]
    counts: dict[str, int]


class SmsSendRequest(BaseModel):
    """Schema for a direct SMS send."""

    phone_number: str = Field(..., min_length=1, max_length=20)
    message: str = Field(..., min_length=1, max_length=1000)


class SmsSendResponse(BaseModel):
    """Schema for a direct SMS send result."""

    success: bool
    phone: str
    message: str
