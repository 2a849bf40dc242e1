"""Ambulance notification, decision and push token schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class AmbulanceNotificationRecord(BaseModel):
    """A notification as seen by the targeted driver."""

    id: UUID
    request_id: UUID
    user_id: UUID
    driver_id: UUID
    pickup_latitude: float
    pickup_longitude: float
    pickup_address: str | None
    emergency_type: str
    description: str | None
    customer_name: str | None
    customer_phone: str | None
    distance_km: float | None
    status: str
    accepted_driver_id: UUID | None
    read_at: datetime | None
    delivered_at: datetime | None
    created_at: datetime
    accepted_by_other: bool = Field(
        default=False, description="Another driver already took this request"
    )
    actions_enabled: bool = Field(default=True, description="Accept/reject still possible")

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Schema for a driver's notification list."""

    notifications: list[AmbulanceNotificationRecord]
    total: int


class AcceptResponse(BaseModel):
    """Result of a successful accept."""

    request_id: UUID
    notification_id: UUID
    status: Literal["accepted"]
    siblings_updated: int
    directions_url: str
    customer_name: str | None
    customer_phone: str | None
    pickup_address: str | None


class RejectResponse(BaseModel):
    """Result of a reject."""

    request_id: UUID
    notification_id: UUID
    status: Literal["rejected"]


class DriverHistoryRecord(BaseModel):
    """Schema for an audit history row."""

    id: UUID
    driver_id: UUID
    request_id: UUID
    customer_name: str | None
    customer_phone: str | None
    emergency_type: str
    pickup_address: str | None
    action: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DriverHistoryResponse(BaseModel):
    """Paginated driver history."""

    history: list[DriverHistoryRecord]
    total: int
    page: int
    page_size: int


class PushTokenRegister(BaseModel):
    """Schema for registering FCM token."""

    fcm_token: str = Field(..., min_length=1, description="Firebase Cloud Messaging token")
    platform: str = Field(
        ...,
        description="Platform type",
        pattern="^(android|ios|web)$",
    )


class PushTokenResponse(BaseModel):
    """Schema for push token response."""

    id: UUID
    user_id: UUID
    fcm_token: str
    platform: str
    is_active: bool
    last_used_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
