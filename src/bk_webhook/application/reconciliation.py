"""Webhook address reconciliation.

Three entry points:
  - reconcile_chain(chain): the per-chain pass the durable-mirror listener
    triggers. Recomputes add/remove sets from snapshot freshness and the
    webhook_monitored flag, so a failed pass is repaired by the next one.
  - reconcile_subscribed_addresses(): compares each active subscription's
    real address list against live snapshots and removes the stale ones.
  - run_periodic(): background sweep calling reconcile_chain for every chain
    with snapshots, independent of update traffic.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.bk_common.datetime_utils import utc_now
from src.bk_common.enums import chain_from_input
from src.bk_portfolio.domain.repository import PortfolioRepositoryProtocol
from src.bk_portfolio.infrastructure.persistence import PortfolioRepository
from src.bk_webhook.application.management import WebhookManagementService
from src.bk_webhook.domain.reconciliation import (
    AddressChanges,
    compute_address_changes,
    stale_subscriptions,
)

logger = logging.getLogger(__name__)


class WebhookReconciliationService:
    def __init__(
        self,
        management: WebhookManagementService,
        session_factory: async_sessionmaker[AsyncSession],
        repo: PortfolioRepositoryProtocol | None = None,
    ) -> None:
        self._management = management
        self._session_factory = session_factory
        self._repo: PortfolioRepositoryProtocol = repo or PortfolioRepository()

    async def reconcile_chain(self, chain_name: str) -> AddressChanges | None:
        """One pass for one chain. Returns the applied changes, or None on failure."""
        chain = chain_from_input(chain_name)
        if chain is None:
            logger.warning("Skipping reconciliation for unknown chain: %s", chain_name)
            return None

        async with self._session_factory() as db:
            rows = await self._repo.list_monitoring_candidates(db, chain.value)
            changes = compute_address_changes(rows, utc_now())
            if changes.empty:
                logger.debug("No webhook address changes for %s", chain.value)
                return changes

            logger.info(
                "Reconciling %s webhook: +%d -%d",
                chain.value, len(changes.to_add), len(changes.to_remove),
            )
            ok = await self._management.update_webhook_addresses(
                chain, changes.to_add, changes.to_remove
            )
            if not ok:
                logger.error("Webhook address update failed for %s", chain.value)
                return None

            await self._mark(db, chain.value, changes.to_add, True)
            await self._mark(db, chain.value, changes.to_remove, False)
            return changes

    async def _mark(
        self, db: AsyncSession, chain: str, addresses: list[str], monitored: bool
    ) -> None:
        if not addresses:
            return
        try:
            updated = await self._repo.set_webhook_monitored(db, chain, addresses, monitored)
            await db.commit()
        except Exception:
            # Next pass re-derives the same set from current state
            await db.rollback()
            logger.exception(
                "Failed to set webhook_monitored=%s for %d %s addresses",
                monitored, len(addresses), chain,
            )
            return
        logger.debug("Set webhook_monitored=%s on %d rows (%s)", monitored, updated, chain)

    async def reconcile_subscribed_addresses(self) -> dict[str, int]:
        """Remove subscribed addresses without a live snapshot. Returns removals per chain."""
        if not self._management.webhook_url:
            logger.error("Webhook URL is not configured, skipping address reconciliation")
            return {}

        removed: dict[str, int] = {}
        for chain, webhook_id in await self._management.active_webhooks():
            subscribed = await self._management.list_subscribed_addresses(chain, webhook_id)
            if not subscribed:
                logger.debug("Webhook %s (%s) has no addresses", webhook_id, chain.value)
                continue

            try:
                async with self._session_factory() as db:
                    live = await self._repo.list_live_addresses(db, chain.value)
                    stale = stale_subscriptions(subscribed, live)
                    if not stale:
                        continue
                    if not await self._management.update_webhook_addresses(chain, [], stale):
                        logger.error("Failed to remove stale addresses from %s webhook", chain.value)
                        continue
                    await self._mark(db, chain.value, stale, False)
            except Exception:
                logger.exception("Address reconciliation failed for %s", chain.value)
                continue

            removed[chain.value] = len(stale)
            logger.info("Removed %d stale addresses from %s webhook", len(stale), chain.value)
        return removed

    async def sweep(self) -> None:
        try:
            async with self._session_factory() as db:
                chains = await self._repo.list_chains_with_snapshots(db)
        except Exception:
            logger.exception("Reconciliation sweep could not list chains")
            return

        for chain in chains:
            try:
                await self.reconcile_chain(chain)
            except Exception:
                logger.exception("Reconciliation sweep failed for %s", chain)

    async def run_periodic(
        self, interval_seconds: float = settings.RECONCILE_INTERVAL_SECONDS
    ) -> None:
        logger.info("Webhook reconciliation sweep every %ss", interval_seconds)
        await self.reconcile_subscribed_addresses()
        while True:
            await asyncio.sleep(interval_seconds)
            await self.sweep()
