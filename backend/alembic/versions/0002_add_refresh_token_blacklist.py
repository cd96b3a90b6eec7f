"""Add refresh_token_blacklist table.

Shared replay guard storage for deployments with more than one instance
(TOKEN_BLACKLIST_BACKEND=database). Keys are SHA-256 digests of the
redeemed refresh tokens; raw tokens are never stored.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "refresh_token_blacklist",
        sa.Column("token_id", sa.String(64), primary_key=True),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("blacklisted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_refresh_token_blacklist_subject_id", "refresh_token_blacklist", ["subject_id"]
    )
    op.create_index(
        "ix_refresh_token_blacklist_expires_at", "refresh_token_blacklist", ["expires_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_refresh_token_blacklist_expires_at", table_name="refresh_token_blacklist")
    op.drop_index("ix_refresh_token_blacklist_subject_id", table_name="refresh_token_blacklist")
    op.drop_table("refresh_token_blacklist")
