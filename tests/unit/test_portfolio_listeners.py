"""Tests for bk_portfolio listeners — cache write, durable mirror, activity."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bk_cache.application.fast_cache import FastCache
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
from src.bk_portfolio.application.listeners import (
    AddressActivityListener,
    DurableMirrorListener,
    PortfolioCacheListener,
    register_portfolio_listeners,
)

ADDRESS = "0xabc0000000000000000000000000000000000001"
DATA = {"nativeBalance": {"symbol": "ETH", "balance": "1"}, "tokens": [], "nfts": []}


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _session_factory(db):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=db)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


@pytest.fixture
def db():
    session = MagicMock()
    session.commit = AsyncMock()
    return session


@pytest.fixture
def mock_repo():
    repo = MagicMock()
    repo.save_snapshot = AsyncMock()
    return repo


def _cache_updated(chain: str = "ethereum") -> PortfolioCacheUpdatedEvent:
    return PortfolioCacheUpdatedEvent(chain, 1, ADDRESS, DATA, None, 1800)


class TestPortfolioCacheListener:
    @pytest.mark.asyncio
    async def test_writes_cache_then_publishes_durable_ttl(self) -> None:
        cache = FastCache(None)
        bus = EventBus()
        received: list = []

        async def handler(event) -> None:
            received.append(event)

        bus.subscribe(PORTFOLIO_CACHE_UPDATED, handler)
        listener = PortfolioCacheListener(cache, bus, durable_ttl=1800)

        await listener.handle(PortfolioUpdateEvent("ethereum", 1, ADDRESS, DATA, "alchemy", 300))

        assert await cache.get(f"portfolio:ethereum:1:{ADDRESS}:alchemy") == DATA
        assert received[0].ttl == 1800
        assert received[0].provider == "alchemy"

    @pytest.mark.asyncio
    async def test_write_failure_skips_mirror(self) -> None:
        cache = MagicMock()
        cache.set = AsyncMock(side_effect=CacheWriteFailure("k", "down"))
        bus = MagicMock()
        bus.publish = AsyncMock()
        listener = PortfolioCacheListener(cache, bus)

        await listener.handle(PortfolioUpdateEvent("ethereum", 1, ADDRESS, DATA))

        bus.publish.assert_not_awaited()


class TestDurableMirrorListener:
    @pytest.mark.asyncio
    async def test_saves_and_commits(self, db, mock_repo) -> None:
        listener = DurableMirrorListener(_session_factory(db), repo=mock_repo)

        await listener.handle(_cache_updated())

        mock_repo.save_snapshot.assert_awaited_once_with(
            db, "ethereum", 1, ADDRESS, DATA, None, 1800
        )
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconcile_throttled_per_chain(self, db, mock_repo) -> None:
        reconcile = AsyncMock()
        clock = FakeClock()
        listener = DurableMirrorListener(
            _session_factory(db), reconcile, repo=mock_repo,
            interval_seconds=300, clock=clock,
        )

        await listener.handle(_cache_updated("ethereum"))
        await listener.handle(_cache_updated("ethereum"))
        await listener.handle(_cache_updated("polygon"))
        assert [c.args[0] for c in reconcile.await_args_list] == ["ethereum", "polygon"]

        clock.now += 301
        await listener.handle(_cache_updated("ethereum"))
        assert reconcile.await_count == 3

    @pytest.mark.asyncio
    async def test_save_failure_skips_reconcile(self, db, mock_repo) -> None:
        mock_repo.save_snapshot = AsyncMock(side_effect=RuntimeError("db down"))
        reconcile = AsyncMock()
        listener = DurableMirrorListener(_session_factory(db), reconcile, repo=mock_repo)

        await listener.handle(_cache_updated())

        reconcile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconcile_failure_is_absorbed(self, db, mock_repo) -> None:
        reconcile = AsyncMock(side_effect=RuntimeError("notify api down"))
        listener = DurableMirrorListener(_session_factory(db), reconcile, repo=mock_repo)

        await listener.handle(_cache_updated())  # must not raise

        reconcile.assert_awaited_once_with("ethereum")


class TestAddressActivityListener:
    @pytest.mark.asyncio
    async def test_invalidates_address(self, db) -> None:
        portfolio = MagicMock()
        portfolio.invalidate_address_cache = AsyncMock(return_value=2)
        listener = AddressActivityListener(portfolio, _session_factory(db))

        await listener.handle(AddressActivityEvent("ethereum", 1, ADDRESS))

        portfolio.invalidate_address_cache.assert_awaited_once_with(db, "ethereum", 1, ADDRESS)

    @pytest.mark.asyncio
    async def test_ignores_self_emitted_events(self, db) -> None:
        portfolio = MagicMock()
        portfolio.invalidate_address_cache = AsyncMock()
        listener = AddressActivityListener(portfolio, _session_factory(db))

        await listener.handle(AddressActivityEvent("ethereum", 1, ADDRESS, cache_invalidated=True))

        portfolio.invalidate_address_cache.assert_not_awaited()


class TestRegistration:
    def test_subscribes_every_topic(self, db) -> None:
        bus = EventBus()
        register_portfolio_listeners(bus, FastCache(None), MagicMock(), _session_factory(db))

        assert bus.handler_count(PORTFOLIO_UPDATE) == 1
        assert bus.handler_count(PORTFOLIO_CACHE_UPDATED) == 1
        assert bus.handler_count(ADDRESS_ACTIVITY) == 1
