"""002: create portfolio_history table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE portfolio_history (
            id              BIGSERIAL       PRIMARY KEY,
            chain           VARCHAR(32)     NOT NULL,
            chain_id        INTEGER         NOT NULL,
            address         VARCHAR(128)    NOT NULL,
            provider        VARCHAR(32)     NOT NULL DEFAULT '',
            native          JSONB           NOT NULL DEFAULT '{}'::jsonb,
            fungibles       JSONB           NOT NULL DEFAULT '[]'::jsonb,
            nfts            JSONB           NOT NULL DEFAULT '[]'::jsonb,
            block_number    BIGINT          NOT NULL DEFAULT 0,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE INDEX idx_portfolio_history_address_time
        ON portfolio_history (chain_id, address, updated_at DESC);
    """)
    op.execute("COMMENT ON TABLE portfolio_history IS 'Append-only balance history, one row per durable upsert';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS portfolio_history CASCADE;")
