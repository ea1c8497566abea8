"""BalanceService — request orchestration.

    chain/symbol → registry (proxy when a provider is requested)
                 → tiered read (fast cache, durable store)
                 → live fetch → queue update event → respond

The response never waits for cache or durable writes.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_balances.application.schemas import (
    BalanceResponse,
    ChainOut,
    InvalidateResponse,
    PortfolioOut,
)
from src.bk_chains.application.registry import ChainService, ChainServiceRegistry
from src.bk_chains.services.base import canonical_address
from src.bk_common.enums import (
    CHAIN_IDS,
    TESTNETS,
    ChainName,
    ProviderType,
    chain_from_input,
    parse_provider,
)
from src.bk_common.errors import (
    AppError,
    BalanceFetchFailedError,
    BalanceNotQueryableError,
    ChainNotSupportedError,
    InvalidAddressError,
    ProviderNotSupportedError,
)
from src.bk_portfolio.application.service import TieredPortfolioService

logger = logging.getLogger(__name__)


class BalanceService:
    def __init__(
        self, registry: ChainServiceRegistry, portfolio: TieredPortfolioService
    ) -> None:
        self._registry = registry
        self._portfolio = portfolio

    def _resolve_chain(self, chain_input: str) -> ChainName:
        chain = chain_from_input(chain_input)
        if chain is None or not self._registry.is_chain_available(chain.value):
            raise ChainNotSupportedError(chain_input)
        return chain

    def _resolve_service(
        self, chain: ChainName, provider: ProviderType | None
    ) -> ChainService:
        if provider is None:
            return self._registry.get_service(chain.value)
        return self._registry.get_service_with_provider(chain.value, provider)

    async def get_portfolio(
        self,
        db: AsyncSession,
        chain_input: str,
        address: str,
        provider: str | None = None,
    ) -> BalanceResponse:
        chain = self._resolve_chain(chain_input)
        provider_type = parse_provider(provider) if provider else None
        if provider and provider_type is None:
            raise ProviderNotSupportedError(provider, chain.value)

        service = self._resolve_service(chain, provider_type)
        if not service.is_valid_address(address):
            raise InvalidAddressError(chain.value, address)

        chain_id = CHAIN_IDS[chain]
        key_address = canonical_address(chain, address)

        data = await self._portfolio.get_portfolio(
            db, chain.value, chain_id, key_address, provider_type
        )
        if data is None:
            if not service.is_supported():
                raise BalanceNotQueryableError(chain.value)
            logger.debug("Tiered miss for %s:%s, fetching live", chain.value, key_address)
            try:
                data = await service.get_balances(address, chain_id)
            except AppError as exc:
                raise BalanceFetchFailedError(
                    chain.value, address, exc.details or exc.message
                ) from exc
            except Exception as exc:
                logger.exception("Live balance fetch failed for %s:%s", chain.value, address)
                raise BalanceFetchFailedError(chain.value, address, str(exc)) from exc

            self._portfolio.publish_portfolio_update(
                chain.value, chain_id, key_address, data, provider_type
            )

        return BalanceResponse(
            chain=chain.value,
            chainId=chain_id,
            address=key_address,
            provider=provider_type.value if provider_type else None,
            portfolio=PortfolioOut.model_validate(data),
        )

    async def invalidate(
        self, db: AsyncSession, chain_input: str, address: str
    ) -> InvalidateResponse:
        chain = self._resolve_chain(chain_input)
        chain_id = CHAIN_IDS[chain]
        key_address = canonical_address(chain, address)
        deleted = await self._portfolio.invalidate_address_cache(
            db, chain.value, chain_id, key_address
        )
        return InvalidateResponse(
            chain=chain.value, chainId=chain_id, address=key_address, deleted=deleted
        )

    def list_chains(self) -> list[ChainOut]:
        chains: list[ChainOut] = []
        for name in self._registry.available_chains():
            chain = ChainName(name)
            service = self._registry.get_service(name)
            chain_id = CHAIN_IDS[chain]
            chains.append(
                ChainOut(
                    chain=name,
                    chainId=chain_id,
                    name=service.get_chain_name(chain_id),
                    symbol=service.get_chain_symbol(chain_id),
                    testnet=chain in TESTNETS,
                )
            )
        return chains
