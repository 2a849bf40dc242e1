"""Append-only audit log of driver decisions."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from medgo.models.base import metadata

driver_request_history = Table(
    "driver_request_history",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("driver_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column(
        "request_id",
        Uuid,
        ForeignKey("ambulance_requests.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("customer_name", Text, nullable=True),
    Column("customer_phone", String(20), nullable=True),
    Column("emergency_type", String(100), nullable=False),
    Column("pickup_address", Text, nullable=True),
    Column("action", String(20), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("action IN ('accepted', 'rejected')", name="driver_request_history_action_check"),
    Index("idx_driver_request_history_driver", "driver_id", "created_at"),
)
