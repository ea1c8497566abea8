"""001: create portfolio_snapshots table

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE portfolio_snapshots (
            id                  BIGSERIAL       PRIMARY KEY,
            chain               VARCHAR(32)     NOT NULL,
            chain_id            INTEGER         NOT NULL,
            address             VARCHAR(128)    NOT NULL,
            provider            VARCHAR(32)     NOT NULL DEFAULT '',
            native              JSONB           NOT NULL DEFAULT '{}'::jsonb,
            fungibles           JSONB           NOT NULL DEFAULT '[]'::jsonb,
            nfts                JSONB           NOT NULL DEFAULT '[]'::jsonb,
            block_number        BIGINT          NOT NULL DEFAULT 0,
            expires_at          TIMESTAMPTZ     NOT NULL,
            webhook_monitored   BOOLEAN,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_portfolio_chain_address_provider
                UNIQUE (chain_id, address, provider)
        );
    """)
    op.execute("""
        CREATE INDEX idx_portfolio_chain_expires
        ON portfolio_snapshots (chain, expires_at);
    """)
    op.execute("""
        CREATE INDEX idx_portfolio_monitored
        ON portfolio_snapshots (chain, address)
        WHERE webhook_monitored IS TRUE;
    """)
    op.execute("""
        CREATE TRIGGER trg_portfolio_snapshots_updated_at
        BEFORE UPDATE ON portfolio_snapshots
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE portfolio_snapshots IS "
        "'Durable tier — one row per (chain_id, address, provider); provider '''' = chain default';"
    )
    op.execute(
        "COMMENT ON COLUMN portfolio_snapshots.webhook_monitored IS "
        "'TRUE once subscribed to the address-activity webhook; NULL otherwise';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS portfolio_snapshots CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
