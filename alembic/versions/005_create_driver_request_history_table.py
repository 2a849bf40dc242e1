"""create driver_request_history table

Revision ID: 005
Revises: 004
Create Date: 2026-09-01 10:20:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the append-only accept/reject audit table."""
    op.create_table(
        "driver_request_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("driver_id", sa.Uuid(), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=True),
        sa.Column("customer_phone", sa.String(20), nullable=True),
        sa.Column("emergency_type", sa.String(100), nullable=False),
        sa.Column("pickup_address", sa.Text(), nullable=True),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["driver_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["request_id"], ["ambulance_requests.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "action IN ('accepted', 'rejected')", name="driver_request_history_action_check"
        ),
    )
    op.create_index(
        "idx_driver_request_history_driver",
        "driver_request_history",
        ["driver_id", "created_at"],
    )


def downgrade() -> None:
    """Drop driver_request_history table."""
    op.drop_index("idx_driver_request_history_driver", table_name="driver_request_history")
    op.drop_table("driver_request_history")
