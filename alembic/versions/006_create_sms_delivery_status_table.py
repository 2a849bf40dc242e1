"""create sms_delivery_status table

Revision ID: 006
Revises: 005
Create Date: 2026-09-01 10:25:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create per-driver SMS delivery tracking."""
    op.create_table(
        "sms_delivery_status",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("driver_id", sa.Uuid(), nullable=True),
        sa.Column("driver_phone", sa.String(20), nullable=False),
        sa.Column(
            "delivery_status", sa.String(20), server_default=sa.text("'pending'"), nullable=False
        ),
        sa.Column("provider_response", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["request_id"], ["ambulance_requests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["driver_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "delivery_status IN ('pending', 'delivered', 'failed')",
            name="sms_delivery_status_check",
        ),
    )
    op.create_index("idx_sms_delivery_status_request", "sms_delivery_status", ["request_id"])


def downgrade() -> None:
    """Drop sms_delivery_status table."""
    op.drop_index("idx_sms_delivery_status_request", table_name="sms_delivery_status")
    op.drop_table("sms_delivery_status")
