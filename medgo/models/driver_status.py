"""Driver availability and last known location."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Table,
    Uuid,
    func,
    text,
)

from medgo.models.base import metadata

driver_status = Table(
    "driver_status",
    metadata,
    # One row per driver; availability toggles upsert on this key
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("available", Boolean, nullable=False, server_default=text("false")),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "latitude IS NULL OR (latitude >= -90 AND latitude <= 90)",
        name="driver_status_latitude_check",
    ),
    CheckConstraint(
        "longitude IS NULL OR (longitude >= -180 AND longitude <= 180)",
        name="driver_status_longitude_check",
    ),
    Index("idx_driver_status_available", "available"),
)
