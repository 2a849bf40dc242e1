"""create ambulance_requests and ambulance_notifications tables

Revision ID: 003
Revises: 002
Create Date: 2026-09-01 10:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create the request table and its per-driver notification rows."""
    op.create_table(
        "ambulance_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=True),
        sa.Column("customer_phone", sa.String(20), nullable=True),
        sa.Column("pickup_latitude", sa.Float(), nullable=False),
        sa.Column("pickup_longitude", sa.Float(), nullable=False),
        sa.Column("pickup_address", sa.Text(), nullable=True),
        sa.Column("emergency_type", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("dispatch_policy", sa.String(20), nullable=False),
        sa.Column("radius_km", sa.Float(), nullable=True),
        sa.Column("accepted_driver_id", sa.Uuid(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["accepted_driver_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted')", name="ambulance_requests_status_check"
        ),
        sa.CheckConstraint(
            "dispatch_policy IN ('radius', 'broadcast')",
            name="ambulance_requests_policy_check",
        ),
    )
    op.create_index(
        "idx_ambulance_requests_customer", "ambulance_requests", ["customer_id", "created_at"]
    )

    op.create_table(
        "ambulance_notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("driver_id", sa.Uuid(), nullable=False),
        sa.Column("pickup_latitude", sa.Float(), nullable=False),
        sa.Column("pickup_longitude", sa.Float(), nullable=False),
        sa.Column("pickup_address", sa.Text(), nullable=True),
        sa.Column("emergency_type", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("customer_name", sa.Text(), nullable=True),
        sa.Column("customer_phone", sa.String(20), nullable=True),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("accepted_driver_id", sa.Uuid(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["request_id"], ["ambulance_requests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["driver_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted')", name="ambulance_notifications_status_check"
        ),
        sa.UniqueConstraint("request_id", "driver_id", name="unique_request_driver"),
    )
    op.create_index(
        "idx_ambulance_notifications_driver",
        "ambulance_notifications",
        ["driver_id", "created_at"],
    )
    op.create_index(
        "idx_ambulance_notifications_request", "ambulance_notifications", ["request_id"]
    )


def downgrade() -> None:
    """Drop ambulance tables."""
    op.drop_index("idx_ambulance_notifications_request", table_name="ambulance_notifications")
    op.drop_index("idx_ambulance_notifications_driver", table_name="ambulance_notifications")
    op.drop_table("ambulance_notifications")
    op.drop_index("idx_ambulance_requests_customer", table_name="ambulance_requests")
    op.drop_table("ambulance_requests")
