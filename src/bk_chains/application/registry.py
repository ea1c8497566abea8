"""ChainServiceRegistry — chain name/symbol → service instance.

Registration happens once at startup from BUILTIN_CHAIN_SERVICES. Instances
are created lazily, one per service class, and shared by every chain that
class serves.

get_service_with_provider() never touches the shared instance: it returns a
ProviderOverrideProxy pinned to the requested provider. Proxies are cached
per (chain, provider) so repeated calls return the same object.
"""

import logging
from typing import Any

from src.bk_chains.services.base import AbstractChainService
from src.bk_chains.services.chains import BUILTIN_CHAIN_SERVICES
from src.bk_common.enums import ChainName, ProviderType, normalize_chain_input
from src.bk_common.errors import ChainServiceNotFoundError
from src.bk_providers.application.factory import ProviderFactory

logger = logging.getLogger(__name__)


class ProviderOverrideProxy:
    """Same interface as the wrapped service with the provider pinned."""

    def __init__(self, base: AbstractChainService, provider: ProviderType) -> None:
        self._base = base
        self._provider = provider

    def __getattr__(self, name: str) -> Any:
        # Anything not overridden here (family, primary_chain, EVM chain-id
        # accessors) is served by the shared instance
        if name == "_base":
            raise AttributeError(name)
        return getattr(self._base, name)

    @property
    def base(self) -> AbstractChainService:
        return self._base

    @property
    def chains(self) -> tuple[ChainName, ...]:
        return self._base.chains

    def get_default_provider(self) -> ProviderType:
        return self._provider

    def set_default_provider(self, provider: ProviderType) -> None:
        # Pinned; the shared service keeps its own default
        return None

    def resolve_chain(self, chain_id: int | None = None) -> ChainName:
        return self._base.resolve_chain(chain_id)

    def get_chain_name(self, chain_id: int | None = None) -> str:
        return self._base.get_chain_name(chain_id)

    def get_chain_symbol(self, chain_id: int | None = None) -> str:
        return self._base.get_chain_symbol(chain_id)

    def is_valid_address(self, address: str) -> bool:
        return self._base.is_valid_address(address)

    def is_supported(self, provider: ProviderType | None = None) -> bool:
        return self._base.is_supported(provider or self._provider)

    async def get_balances(
        self,
        address: str,
        chain_id: int | None = None,
        provider: ProviderType | None = None,
    ) -> dict[str, Any]:
        return await self._base.get_balances(address, chain_id, provider or self._provider)


ChainService = AbstractChainService | ProviderOverrideProxy


class ChainServiceRegistry:
    def __init__(self, providers: ProviderFactory) -> None:
        self._providers = providers
        self._service_types: dict[str, type[AbstractChainService]] = {}
        self._instances: dict[type[AbstractChainService], AbstractChainService] = {}
        self._proxies: dict[tuple[str, ProviderType], ProviderOverrideProxy] = {}

    def register_service_type(
        self, chain_key: str | ChainName, service_class: type[AbstractChainService]
    ) -> None:
        key = chain_key.value if isinstance(chain_key, ChainName) else chain_key.lower()
        self._service_types[key] = service_class
        logger.debug("Registered %s for chain %s", service_class.__name__, key)

    def get_service(self, chain_name_or_symbol: str) -> AbstractChainService:
        chain = normalize_chain_input(chain_name_or_symbol)
        service_class = self._service_types.get(chain)
        if service_class is None:
            raise ChainServiceNotFoundError(chain)

        instance = self._instances.get(service_class)
        if instance is None:
            instance = service_class(self._providers)
            self._instances[service_class] = instance
        return instance

    def get_service_with_provider(
        self, chain_name_or_symbol: str, provider: ProviderType
    ) -> ProviderOverrideProxy:
        chain = normalize_chain_input(chain_name_or_symbol)
        key = (chain, provider)
        proxy = self._proxies.get(key)
        if proxy is None:
            proxy = ProviderOverrideProxy(self.get_service(chain), provider)
            self._proxies[key] = proxy
        return proxy

    def available_chains(self) -> list[str]:
        return sorted(self._service_types)

    def is_chain_available(self, chain_name_or_symbol: str) -> bool:
        return normalize_chain_input(chain_name_or_symbol) in self._service_types


def register_builtin_services(registry: ChainServiceRegistry) -> ChainServiceRegistry:
    for service_class in BUILTIN_CHAIN_SERVICES:
        for chain in service_class.chains:
            registry.register_service_type(chain, service_class)
    return registry
