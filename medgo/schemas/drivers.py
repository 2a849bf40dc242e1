"""Driver status and lookup schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class DriverStatusUpdate(BaseModel):
    """Availability toggle, optionally with the driver's current position."""

    available: bool
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_location_pair(self) -> "DriverStatusUpdate":
        """Latitude and longitude must be given together."""
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        return self


class DriverStatusResponse(BaseModel):
    """Schema for a driver's current status."""

    user_id: UUID
    available: bool
    latitude: float | None
    longitude: float | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class NearbyDriver(BaseModel):
    """An available driver within the search radius."""

    driver_id: UUID
    latitude: float | None
    longitude: float | None
    distance_km: float | None
    updated_at: datetime | None = None


class NearbyDriversResponse(BaseModel):
    """Result of a nearby-driver search."""

    count: int
    radius_km: float
    drivers: list[NearbyDriver]
