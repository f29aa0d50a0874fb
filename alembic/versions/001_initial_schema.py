"""
Initial database schema: air_quality_subscriptions.

Revision ID: 001
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the subscriptions table (one row per owner)."""
    op.create_table(
        "air_quality_subscriptions",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("owner_id", sa.String(100), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=True),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_air_quality_subscriptions_owner_id",
        "air_quality_subscriptions",
        ["owner_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_air_quality_subscriptions_owner_id", table_name="air_quality_subscriptions")
    op.drop_table("air_quality_subscriptions")
