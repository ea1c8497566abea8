"""Event listeners that keep the fast cache, durable store and webhook
subscriptions in step after a live fetch.

    portfolio.update ──► PortfolioCacheListener ──► portfolio.redis.updated
                                                         │
                                   DurableMirrorListener ◄┘──► reconcile(chain)

    address.activity ──► AddressActivityListener ──► invalidate both tiers

Every handler runs after the HTTP response is sent; failures are logged and
never propagate (the bus also isolates them).
"""

import logging
import time
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.bk_cache.application.fast_cache import FastCache
from src.bk_cache.domain.keys import create_portfolio_key
from src.bk_common.errors import CacheWriteFailure
from src.bk_events.bus import EventBus
from src.bk_events.events import (
    ADDRESS_ACTIVITY,
    PORTFOLIO_CACHE_UPDATED,
    PORTFOLIO_UPDATE,
    AddressActivityEvent,
    PortfolioCacheUpdatedEvent,
    PortfolioUpdateEvent,
)
from src.bk_portfolio.application.service import TieredPortfolioService
from src.bk_portfolio.domain.repository import PortfolioRepositoryProtocol
from src.bk_portfolio.infrastructure.persistence import PortfolioRepository

logger = logging.getLogger(__name__)

ReconcileFn = Callable[[str], Awaitable[object]]


class PortfolioCacheListener:
    """portfolio.update → fast cache write → portfolio.redis.updated."""

    def __init__(
        self,
        cache: FastCache,
        bus: EventBus,
        durable_ttl: int = settings.DURABLE_TTL_SECONDS,
    ) -> None:
        self._cache = cache
        self._bus = bus
        self._durable_ttl = durable_ttl

    async def handle(self, event: PortfolioUpdateEvent) -> None:
        key = create_portfolio_key(event.chain, event.address, event.provider, event.chain_id)
        try:
            await self._cache.set(key, event.data, event.ttl)
        except CacheWriteFailure as exc:
            # Durable mirror only follows a confirmed fast write
            logger.error("Fast cache write failed for %s, skipping mirror: %s", key, exc.details)
            return
        logger.debug("Cached portfolio at %s (ttl=%s)", key, event.ttl)

        await self._bus.publish(
            PORTFOLIO_CACHE_UPDATED,
            PortfolioCacheUpdatedEvent(
                chain=event.chain,
                chain_id=event.chain_id,
                address=event.address,
                data=event.data,
                provider=event.provider,
                ttl=self._durable_ttl,
            ),
        )


class DurableMirrorListener:
    """portfolio.redis.updated → durable upsert → throttled reconciliation."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        reconcile: ReconcileFn | None = None,
        repo: PortfolioRepositoryProtocol | None = None,
        interval_seconds: float = settings.RECONCILE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_factory = session_factory
        self._reconcile = reconcile
        self._repo: PortfolioRepositoryProtocol = repo or PortfolioRepository()
        self._interval = interval_seconds
        self._clock = clock
        self._last_processed: dict[str, float] = {}

    async def handle(self, event: PortfolioCacheUpdatedEvent) -> None:
        ttl = event.ttl if event.ttl is not None else settings.DURABLE_TTL_SECONDS
        try:
            async with self._session_factory() as db:
                await self._repo.save_snapshot(
                    db, event.chain, event.chain_id, event.address,
                    event.data, event.provider, ttl,
                )
                await db.commit()
        except Exception:
            logger.exception(
                "Failed to mirror portfolio to durable store: %s:%s:%s",
                event.chain, event.chain_id, event.address,
            )
            return
        logger.debug(
            "Mirrored portfolio %s:%s:%s (ttl=%ss)",
            event.chain, event.chain_id, event.address, ttl,
        )

        if self._reconcile is not None and self._claim(event.chain):
            try:
                await self._reconcile(event.chain)
            except Exception:
                logger.exception("Webhook reconciliation failed for chain %s", event.chain)

    def _claim(self, chain: str) -> bool:
        """True at most once per interval per chain."""
        now = self._clock()
        last = self._last_processed.get(chain)
        if last is not None and now - last < self._interval:
            logger.debug("Reconciliation for %s throttled", chain)
            return False
        self._last_processed[chain] = now
        return True


class AddressActivityListener:
    """address.activity → invalidate both tiers for that address."""

    def __init__(
        self,
        portfolio: TieredPortfolioService,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._portfolio = portfolio
        self._session_factory = session_factory

    async def handle(self, event: AddressActivityEvent) -> None:
        if event.cache_invalidated:
            # Emitted by invalidate_address_cache itself
            return
        logger.debug(
            "Handling address activity: %s:%s:%s", event.chain, event.chain_id, event.address
        )
        try:
            async with self._session_factory() as db:
                deleted = await self._portfolio.invalidate_address_cache(
                    db, event.chain, event.chain_id, event.address
                )
        except Exception:
            logger.exception(
                "Failed to invalidate cache for %s:%s:%s",
                event.chain, event.chain_id, event.address,
            )
            return
        logger.debug(
            "Invalidated %d cache entries for %s:%s:%s",
            deleted, event.chain, event.chain_id, event.address,
        )


def register_portfolio_listeners(
    bus: EventBus,
    cache: FastCache,
    portfolio: TieredPortfolioService,
    session_factory: async_sessionmaker[AsyncSession],
    reconcile: ReconcileFn | None = None,
) -> DurableMirrorListener:
    cache_listener = PortfolioCacheListener(cache, bus)
    mirror = DurableMirrorListener(session_factory, reconcile)
    activity = AddressActivityListener(portfolio, session_factory)

    bus.subscribe(PORTFOLIO_UPDATE, cache_listener.handle)
    bus.subscribe(PORTFOLIO_CACHE_UPDATED, mirror.handle)
    bus.subscribe(ADDRESS_ACTIVITY, activity.handle)
    return mirror
