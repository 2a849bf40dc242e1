"""User profile model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from medgo.models.base import metadata

users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("full_name", Text),
    # Local-format or +91 numbers; normalised at send time
    Column("phone", String(20)),
    Column("role", String(20), nullable=False, server_default=text("'customer'")),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("role IN ('customer', 'driver', 'admin')", name="users_role_check"),
)
