"""evacuation status table

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def _int_array() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.ARRAY(sa.Integer()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "evacuation_status",
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("list_item_id", sa.BigInteger(), nullable=False),
        sa.Column("enter_stream_ids", _int_array(), nullable=True),
        sa.Column("exit_stream_ids", _int_array(), nullable=True),
        sa.Column("status", sa.Boolean(), nullable=True),
        sa.Column("entrance_time", sa.BigInteger(), nullable=True),
        sa.Column("exit_time", sa.BigInteger(), nullable=True),
        sa.Column("manually_updated", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("list_id", "list_item_id"),
    )


def downgrade() -> None:
    op.drop_table("evacuation_status")
