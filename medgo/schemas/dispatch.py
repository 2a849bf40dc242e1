"""Dispatch request/response schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class DispatchRequest(BaseModel):
    """Schema for a customer's call-ambulance request."""

    lat: float = Field(..., ge=-90, le=90, description="Pickup latitude (WGS84)")
    lng: float = Field(..., ge=-180, le=180, description="Pickup longitude (WGS84)")
    emergency_type: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=2000)
    pickup_address: str = Field(default="", max_length=500)
    customer_name: str | None = Field(
        default=None, max_length=200, description="Defaults to the caller's profile name"
    )
    customer_phone: str | None = Field(
        default=None, max_length=20, description="Defaults to the caller's profile phone"
    )
    radius_km: float | None = Field(
        default=None, gt=0, description="Override the configured dispatch radius"
    )

    @field_validator("emergency_type")
    @classmethod
    def strip_emergency_type(cls, v: str) -> str:
        """Reject blank emergency types."""
        v = v.strip()
        if not v:
            raise ValueError("emergency_type must not be blank")
        return v


class DispatchResponse(BaseModel):
    """Aggregate result of a dispatch fan-out."""

    request_id: UUID | None
    success: bool
    message: str
    policy: Literal["radius", "broadcast"]
    radius_km: float | None
    drivers_checked: int
    notified_count: int
    emails_sent: int = 0
    sms_sent: int = 0
    push_sent: int = 0
    operator_alerted: bool = False
    emergency_number: str
    emergency_call_uri: str


class AmbulanceRequestRecord(BaseModel):
    """Schema for a stored ambulance request."""

    id: UUID
    customer_id: UUID
    customer_name: str | None
    customer_phone: str | None
    pickup_latitude: float
    pickup_longitude: float
    pickup_address: str | None
    emergency_type: str
    description: str | None
    status: str
    dispatch_policy: str
    radius_km: float | None
    accepted_driver_id: UUID | None
    accepted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AmbulanceRequestListResponse(BaseModel):
    """Paginated list of a customer's requests."""

    requests: list[AmbulanceRequestRecord]
    total: int
    page: int
    page_size: int
