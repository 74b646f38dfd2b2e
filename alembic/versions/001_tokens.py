"""Tokens table with price fields and raw momentum metrics.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FAMILIES = ("price", "volume", "buy_volume", "sell_volume", "unique_wallet", "trade")
WINDOWS = ("1h", "2h", "4h", "8h", "24h")
FLAGS = ("is_agent", "is_framework", "is_application", "is_meme", "is_kol", "is_defi")


def upgrade() -> None:
    metric_columns = [
        sa.Column(f"{family}_change_{window}_percent",
                  sa.DECIMAL(precision=20, scale=6), nullable=True)
        for family in FAMILIES for window in WINDOWS
    ]
    flag_columns = [
        sa.Column(flag, sa.Boolean(), server_default=sa.text("false"), nullable=False)
        for flag in FLAGS
    ]
    op.create_table(
        "tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("description", sa.TEXT(), nullable=True),
        sa.Column("contract_address", sa.String(length=100), nullable=False),
        sa.Column("chain", sa.String(length=30), nullable=False),
        sa.Column("framework", sa.String(length=50), nullable=True),
        sa.Column("image_url", sa.TEXT(), nullable=True),
        *flag_columns,
        sa.Column("project_desc", sa.TEXT(), nullable=True),
        sa.Column("github_url", sa.TEXT(), nullable=True),
        sa.Column("twitter_url", sa.TEXT(), nullable=True),
        sa.Column("dexscreener_url", sa.TEXT(), nullable=True),
        sa.Column("price", sa.DECIMAL(precision=30, scale=12), nullable=True),
        sa.Column("market_cap", sa.DECIMAL(precision=30, scale=2), nullable=True),
        sa.Column("price_change_24h", sa.DECIMAL(precision=20, scale=6), nullable=True),
        sa.Column("price_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *metric_columns,
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("contract_address", "chain", name="uq_tokens_address_chain"),
    )
    op.create_index("idx_tokens_name", "tokens", ["name"])


def downgrade() -> None:
    op.drop_index("idx_tokens_name", table_name="tokens")
    op.drop_table("tokens")
