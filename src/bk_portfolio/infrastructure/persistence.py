"""PortfolioRepository — concrete implementation of PortfolioRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
Provider-less snapshots are stored with provider = '' so the unique
(chain_id, address, provider) index covers them.

Writes do not commit; the caller owns the transaction.
"""

import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_common.datetime_utils import expires_in, utc_now
from src.bk_portfolio.domain.models import (
    MonitoredAddress,
    PortfolioSnapshot,
    to_durable,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_GET_SNAPSHOT_SQL = text("""
    SELECT chain, chain_id, address, provider, native, fungibles, nfts,
           block_number, expires_at, webhook_monitored, updated_at
    FROM portfolio_snapshots
    WHERE chain_id = :chain_id
      AND address = :address
      AND (CAST(:provider AS TEXT) IS NULL OR provider = CAST(:provider AS TEXT))
      AND expires_at > :now
    ORDER BY updated_at DESC
    LIMIT 1
""")

_UPSERT_SNAPSHOT_SQL = text("""
    INSERT INTO portfolio_snapshots
        (chain, chain_id, address, provider, native, fungibles, nfts,
         block_number, expires_at)
    VALUES
        (:chain, :chain_id, :address, :provider,
         CAST(:native AS JSONB), CAST(:fungibles AS JSONB), CAST(:nfts AS JSONB),
         :block_number, :expires_at)
    ON CONFLICT (chain_id, address, provider) DO UPDATE SET
        chain        = EXCLUDED.chain,
        native       = EXCLUDED.native,
        fungibles    = EXCLUDED.fungibles,
        nfts         = EXCLUDED.nfts,
        block_number = EXCLUDED.block_number,
        expires_at   = EXCLUDED.expires_at,
        updated_at   = NOW()
""")

_INSERT_HISTORY_SQL = text("""
    INSERT INTO portfolio_history
        (chain, chain_id, address, provider, native, fungibles, nfts, block_number)
    VALUES
        (:chain, :chain_id, :address, :provider,
         CAST(:native AS JSONB), CAST(:fungibles AS JSONB), CAST(:nfts AS JSONB),
         :block_number)
""")

_INVALIDATE_ADDRESS_SQL = text("""
    UPDATE portfolio_snapshots
    SET expires_at = :now, updated_at = NOW()
    WHERE chain = :chain
      AND chain_id = :chain_id
      AND address = :address
      AND expires_at > :now
""")

_LIST_CHAINS_SQL = text("""
    SELECT DISTINCT chain FROM portfolio_snapshots ORDER BY chain
""")

# Live or still-monitored rows; expired unmonitored rows need no action
_MONITORING_CANDIDATES_SQL = text("""
    SELECT address, expires_at, webhook_monitored
    FROM portfolio_snapshots
    WHERE chain = :chain
      AND (expires_at > :now OR webhook_monitored IS TRUE)
""")

_LIVE_ADDRESSES_SQL = text("""
    SELECT DISTINCT address
    FROM portfolio_snapshots
    WHERE chain = :chain AND expires_at > :now
""")

_SET_MONITORED_SQL = text("""
    UPDATE portfolio_snapshots
    SET webhook_monitored = CAST(:monitored AS BOOLEAN)
    WHERE chain = :chain AND address = ANY(:addresses)
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _json_column(value: Any, default: Any) -> Any:
    # asyncpg returns JSONB as text unless a codec is registered
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_snapshot(row: Any) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        chain=row.chain,
        chain_id=row.chain_id,
        address=row.address,
        provider=row.provider or None,
        native=_json_column(row.native, {}),
        fungibles=_json_column(row.fungibles, []),
        nfts=_json_column(row.nfts, []),
        block_number=row.block_number,
        expires_at=row.expires_at,
        webhook_monitored=row.webhook_monitored,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PortfolioRepository:
    async def get_snapshot(
        self,
        db: AsyncSession,
        chain_id: int,
        address: str,
        provider: str | None,
    ) -> PortfolioSnapshot | None:
        """Latest unexpired snapshot; provider=None matches any provider."""
        result = await db.execute(
            _GET_SNAPSHOT_SQL,
            {
                "chain_id": chain_id,
                "address": address,
                "provider": provider,
                "now": utc_now(),
            },
        )
        row = result.fetchone()
        return _row_to_snapshot(row) if row else None

    async def save_snapshot(
        self,
        db: AsyncSession,
        chain: str,
        chain_id: int,
        address: str,
        data: dict[str, Any],
        provider: str | None,
        ttl_seconds: int,
    ) -> None:
        durable = to_durable(data)
        params = {
            "chain": chain,
            "chain_id": chain_id,
            "address": address,
            "provider": provider or "",
            "native": json.dumps(durable.native, default=str),
            "fungibles": json.dumps(durable.fungibles, default=str),
            "nfts": json.dumps(durable.nfts, default=str),
            "block_number": durable.block_number,
        }
        await db.execute(
            _UPSERT_SNAPSHOT_SQL, {**params, "expires_at": expires_in(ttl_seconds)}
        )

        if not durable.native:
            logger.warning(
                "Snapshot for %s:%s:%s has no native balance, skipping history",
                chain, chain_id, address,
            )
            return
        # History is best effort; a failed append never fails the snapshot write
        try:
            async with db.begin_nested():
                await db.execute(_INSERT_HISTORY_SQL, params)
        except Exception:
            logger.exception(
                "Failed to append portfolio history for %s:%s:%s",
                chain, chain_id, address,
            )

    async def invalidate_address(
        self,
        db: AsyncSession,
        chain: str,
        chain_id: int,
        address: str,
    ) -> int:
        """Expire every live snapshot of the address. Returns rows touched."""
        result = await db.execute(
            _INVALIDATE_ADDRESS_SQL,
            {"chain": chain, "chain_id": chain_id, "address": address, "now": utc_now()},
        )
        return result.rowcount or 0

    async def list_chains_with_snapshots(self, db: AsyncSession) -> list[str]:
        result = await db.execute(_LIST_CHAINS_SQL)
        return [row.chain for row in result.fetchall()]

    async def list_monitoring_candidates(
        self,
        db: AsyncSession,
        chain: str,
    ) -> list[MonitoredAddress]:
        result = await db.execute(
            _MONITORING_CANDIDATES_SQL, {"chain": chain, "now": utc_now()}
        )
        return [
            MonitoredAddress(
                address=row.address,
                expires_at=row.expires_at,
                webhook_monitored=row.webhook_monitored,
            )
            for row in result.fetchall()
        ]

    async def list_live_addresses(self, db: AsyncSession, chain: str) -> set[str]:
        result = await db.execute(
            _LIVE_ADDRESSES_SQL, {"chain": chain, "now": utc_now()}
        )
        return {row.address for row in result.fetchall()}

    async def set_webhook_monitored(
        self,
        db: AsyncSession,
        chain: str,
        addresses: list[str],
        monitored: bool,
    ) -> int:
        if not addresses:
            return 0
        result = await db.execute(
            _SET_MONITORED_SQL,
            {
                "chain": chain,
                "addresses": list(addresses),
                # Unmonitored is stored as NULL, matching never-subscribed rows
                "monitored": True if monitored else None,
            },
        )
        return result.rowcount or 0
