"""FCM device tokens used by the push channel."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
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

# A user may hold one active token per platform; re-registering reuses the row
push_tokens = Table(
    "push_tokens",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("fcm_token", Text, nullable=False),
    Column("platform", String(10), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("last_used_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("platform IN ('android', 'ios', 'web')", name="push_tokens_platform_check"),
    UniqueConstraint("user_id", "fcm_token", name="uq_push_tokens_user_token"),
    Index("ix_push_tokens_user_active", "user_id", "is_active"),
)
