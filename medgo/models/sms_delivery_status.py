"""Per-driver SMS delivery tracking for a dispatch."""

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
    text,
)

from medgo.models.base import metadata

sms_delivery_status = Table(
    "sms_delivery_status",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "request_id",
        Uuid,
        ForeignKey("ambulance_requests.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("driver_id", Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    Column("driver_phone", String(20), nullable=False),
    Column("delivery_status", String(20), nullable=False, server_default=text("'pending'")),
    Column("provider_response", Text, nullable=True),
    Column("error_message", Text, nullable=True),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "delivery_status IN ('pending', 'delivered', 'failed')",
        name="sms_delivery_status_check",
    ),
    Index("idx_sms_delivery_status_request", "request_id"),
)
