"""Domain events and their topic names."""

from dataclasses import dataclass
from typing import Any

PORTFOLIO_UPDATE = "portfolio.update"
PORTFOLIO_CACHE_UPDATED = "portfolio.redis.updated"
ADDRESS_ACTIVITY = "address.activity"
ADDRESS_CACHE_INVALIDATED = "cache.address.invalidated"


@dataclass(frozen=True)
class PortfolioUpdateEvent:
    """A live fetch produced fresh balances; written to the fast cache first."""

    chain: str
    chain_id: int
    address: str
    data: dict[str, Any]
    provider: str | None = None
    ttl: int | None = None


@dataclass(frozen=True)
class PortfolioCacheUpdatedEvent:
    """Fast cache write confirmed; `ttl` is the durable-store TTL."""

    chain: str
    chain_id: int
    address: str
    data: dict[str, Any]
    provider: str | None = None
    ttl: int | None = None


@dataclass(frozen=True)
class AddressActivityEvent:
    chain: str
    chain_id: int
    address: str
    # Set on events emitted by cache invalidation itself
    cache_invalidated: bool = False


@dataclass(frozen=True)
class AddressCacheInvalidatedEvent:
    chain: str
    chain_id: int
    address: str
    deleted_count: int = 0
