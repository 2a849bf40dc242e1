"""create driver_status table

Revision ID: 002
Revises: 001
Create Date: 2026-09-01 10:05:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create driver_status table keyed on the driver's user id."""
    op.create_table(
        "driver_status",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("available", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "latitude IS NULL OR (latitude >= -90 AND latitude <= 90)",
            name="driver_status_latitude_check",
        ),
        sa.CheckConstraint(
            "longitude IS NULL OR (longitude >= -180 AND longitude <= 180)",
            name="driver_status_longitude_check",
        ),
    )
    op.create_index("idx_driver_status_available", "driver_status", ["available"])


def downgrade() -> None:
    """Drop driver_status table."""
    op.drop_index("idx_driver_status_available", table_name="driver_status")
    op.drop_table("driver_status")
