"""challenge records

Revision ID: 5c1e0a7d2b94
Revises:
Create Date: 2026-10-17 09:12:40.518233

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e0a7d2b94"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create wallet timestamp, token usage and token binding tables."""
    op.create_table(
        "wallet_timestamp",
        sa.Column("chain_ticker", sa.Text(), nullable=False),
        sa.Column("wallet_address", sa.Text(), nullable=False),
        sa.Column("last_timestamp", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("chain_ticker", "wallet_address"),
    )
    op.create_table(
        "token_usage",
        sa.Column("contract_address", sa.Text(), nullable=False),
        sa.Column("token_id", sa.Text(), nullable=False),
        sa.Column("author_address", sa.Text(), nullable=False),
        sa.Column("last_used_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("contract_address", "token_id"),
    )
    op.create_table(
        "token_binding",
        sa.Column("community_id", sa.Text(), nullable=False),
        sa.Column("contract_address", sa.Text(), nullable=False),
        sa.Column("token_id", sa.Text(), nullable=False),
        sa.Column("author_address", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("community_id", "contract_address", "token_id"),
    )


def downgrade() -> None:
    """Drop the challenge record tables."""
    op.drop_table("token_binding")
    op.drop_table("token_usage")
    op.drop_table("wallet_timestamp")
