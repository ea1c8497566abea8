"""TieredPortfolioService — fast cache first, durable store second.

Reads absorb every tier failure and report a miss. The write path never
writes synchronously: publish_portfolio_update() hands the fresh result to
the event bus and returns, and the listeners persist it.

The caller (balance service, listeners) passes the db session; writes that
touch the durable store are committed here because they are the whole unit
of work.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.bk_cache.application.fast_cache import FastCache
from src.bk_cache.domain.keys import (
    address_key_base,
    address_pattern,
    create_portfolio_key,
    provider_pattern,
)
from src.bk_common.enums import ProviderType, parse_provider
from src.bk_common.errors import CacheWriteFailure, ProviderNotSupportedError
from src.bk_events.bus import EventBus
from src.bk_events.events import (
    ADDRESS_ACTIVITY,
    ADDRESS_CACHE_INVALIDATED,
    PORTFOLIO_UPDATE,
    AddressActivityEvent,
    AddressCacheInvalidatedEvent,
    PortfolioUpdateEvent,
)
from src.bk_portfolio.domain.models import to_balance_response
from src.bk_portfolio.domain.repository import PortfolioRepositoryProtocol
from src.bk_portfolio.infrastructure.persistence import PortfolioRepository

logger = logging.getLogger(__name__)


def _provider_value(provider: str | ProviderType | None) -> str | None:
    if provider is None:
        return None
    parsed = parse_provider(provider.value if isinstance(provider, ProviderType) else provider)
    if parsed is None:
        raise ProviderNotSupportedError(str(provider))
    return parsed.value


class TieredPortfolioService:
    def __init__(
        self,
        cache: FastCache,
        bus: EventBus,
        repo: PortfolioRepositoryProtocol | None = None,
    ) -> None:
        self._cache = cache
        self._bus = bus
        self._repo: PortfolioRepositoryProtocol = repo or PortfolioRepository()

    async def get_portfolio(
        self,
        db: AsyncSession,
        chain: str,
        chain_id: int,
        address: str,
        provider: str | ProviderType | None = None,
        ttl_seconds: int | None = None,
    ) -> dict[str, Any] | None:
        provider_name = _provider_value(provider)
        key = create_portfolio_key(chain, address, provider_name, chain_id)

        cached = await self._cache.get(key)
        if cached:
            logger.debug("Cache hit for key: %s", key)
            return cached

        logger.debug("Cache miss for key: %s, reading durable store", key)
        try:
            snapshot = await self._repo.get_snapshot(db, chain_id, address, provider_name)
        except Exception:
            logger.exception("Durable read failed for key: %s", key)
            return None

        if snapshot is None:
            logger.debug("No data found for %s in fast cache or durable store", key)
            return None

        logger.debug("Durable hit for key: %s, writing back to fast cache", key)
        result = to_balance_response(snapshot)
        try:
            await self._cache.set(key, result, ttl_seconds)
        except CacheWriteFailure as exc:
            logger.error("Write-back failed for key %s: %s", key, exc.details)
        return result

    async def invalidate_address_cache(
        self,
        db: AsyncSession,
        chain: str,
        chain_id: int,
        address: str,
    ) -> int:
        """Drop every cached entry for the address in both tiers.

        Returns the number of fast-cache keys removed.
        """
        pattern = address_pattern(chain, chain_id, address)
        deleted = await self._cache.delete_by_pattern(pattern)
        fast_failure: CacheWriteFailure | None = None
        try:
            # The provider-less entry has no trailing segment for the glob to match
            if await self._cache.delete(address_key_base(chain, chain_id, address)):
                deleted += 1
        except CacheWriteFailure as exc:
            fast_failure = exc
        logger.debug("Invalidated %d fast cache keys for pattern: %s", deleted, pattern)

        # Durable rows are expired even when the fast tier is down
        modified = await self._repo.invalidate_address(db, chain, chain_id, address)
        await db.commit()
        logger.debug(
            "Expired %d durable snapshots for %s:%s:%s", modified, chain, chain_id, address
        )
        if fast_failure is not None:
            raise fast_failure

        try:
            await self._bus.publish(
                ADDRESS_CACHE_INVALIDATED,
                AddressCacheInvalidatedEvent(chain, chain_id, address, deleted),
            )
            await self._bus.publish(
                ADDRESS_ACTIVITY,
                AddressActivityEvent(chain, chain_id, address, cache_invalidated=True),
            )
        except Exception:
            logger.exception(
                "Failed to publish invalidation for %s:%s:%s", chain, chain_id, address
            )
        return deleted

    async def invalidate_provider_cache(self, provider: str | ProviderType) -> int:
        """Fast cache only; durable rows refresh on the next live fetch."""
        parsed = parse_provider(
            provider.value if isinstance(provider, ProviderType) else provider
        )
        if parsed is None:
            raise ProviderNotSupportedError(str(provider))
        deleted = await self._cache.delete_by_pattern(provider_pattern(parsed))
        logger.debug("Invalidated %d fast cache keys for provider: %s", deleted, parsed.value)
        return deleted

    def publish_portfolio_update(
        self,
        chain: str,
        chain_id: int,
        address: str,
        data: dict[str, Any],
        provider: str | ProviderType | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        event = PortfolioUpdateEvent(
            chain=chain,
            chain_id=chain_id,
            address=address,
            data=data,
            provider=_provider_value(provider),
            ttl=ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS,
        )
        self._bus.publish_nowait(PORTFOLIO_UPDATE, event)
        logger.debug("Queued portfolio update for %s:%s:%s", chain, chain_id, address)
