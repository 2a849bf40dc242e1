"""Ambulance request and per-driver notification models."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)

from medgo.models.base import metadata

ambulance_requests = Table(
    "ambulance_requests",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("customer_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("customer_name", Text, nullable=True),
    Column("customer_phone", String(20), nullable=True),
    Column("pickup_latitude", Float, nullable=False),
    Column("pickup_longitude", Float, nullable=False),
    Column("pickup_address", Text, nullable=True),
    Column("emergency_type", String(100), nullable=False),
    Column("description", Text, nullable=True),
    Column("status", String(20), nullable=False, server_default=text("'pending'")),
    Column("dispatch_policy", String(20), nullable=False),
    Column("radius_km", Float, nullable=True),
    Column("accepted_driver_id", Uuid, ForeignKey("users.id", ondelete="SET NULL")),
    Column("accepted_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("status IN ('pending', 'accepted')", name="ambulance_requests_status_check"),
    CheckConstraint(
        "dispatch_policy IN ('radius', 'broadcast')",
        name="ambulance_requests_policy_check",
    ),
    Index("idx_ambulance_requests_customer", "customer_id", "created_at"),
)

# One row per (request, targeted driver); rows sharing request_id form a group
ambulance_notifications = Table(
    "ambulance_notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "request_id",
        Uuid,
        ForeignKey("ambulance_requests.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("driver_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("pickup_latitude", Float, nullable=False),
    Column("pickup_longitude", Float, nullable=False),
    Column("pickup_address", Text, nullable=True),
    Column("emergency_type", String(100), nullable=False),
    Column("description", Text, nullable=True),
    Column("customer_name", Text, nullable=True),
    Column("customer_phone", String(20), nullable=True),
    Column("distance_km", Float, nullable=True),
    Column("status", String(20), nullable=False, server_default=text("'pending'")),
    Column("accepted_driver_id", Uuid, nullable=True),
    Column("read_at", DateTime(timezone=True), nullable=True),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('pending', 'accepted')",
        name="ambulance_notifications_status_check",
    ),
    UniqueConstraint("request_id", "driver_id", name="unique_request_driver"),
    Index("idx_ambulance_notifications_driver", "driver_id", "created_at"),
    Index("idx_ambulance_notifications_request", "request_id"),
)
