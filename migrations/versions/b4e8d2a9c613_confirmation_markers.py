"""confirmation markers for the card return page

Revision ID: b4e8d2a9c613
Revises: a1c3e5f70b21
Create Date: 2026-10-18 14:03:27.551093

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b4e8d2a9c613'
down_revision = 'a1c3e5f70b21'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "confirmation_marker",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("order_reference", sa.String(length=100), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("session_id", "order_reference", name="uq_confirmation_marker_session_ref"),
    )
    op.create_index("ix_confirmation_marker_expires_at", "confirmation_marker", ["expires_at"])


def downgrade():
    op.drop_index("ix_confirmation_marker_expires_at", table_name="confirmation_marker")
    op.drop_table("confirmation_marker")
