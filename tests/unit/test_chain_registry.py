"""Tests for bk_chains registry, provider-override proxy and chain services."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bk_chains.application.registry import (
    ChainServiceRegistry,
    ProviderOverrideProxy,
    register_builtin_services,
)
from src.bk_chains.services.base import canonical_address
from src.bk_chains.services.chains import EthereumService, SolanaService
from src.bk_common.enums import ChainName, NetworkType, ProviderType
from src.bk_common.errors import (
    ChainNotSupportedError,
    ChainServiceNotFoundError,
    InvalidAddressError,
    ProviderNotSupportedError,
)

EVM_ADDRESS = "0x710a850ff60aa2f8e9e27ef1e7edef17a2e682d2"
SOL_ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


@pytest.fixture
def provider_client():
    client = MagicMock()
    client.get_balances = AsyncMock(
        return_value={"nativeBalance": {"symbol": "ETH", "balance": "1"}, "tokens": [], "nfts": []}
    )
    return client


@pytest.fixture
def providers(provider_client):
    factory = MagicMock()
    factory.get_provider = MagicMock(return_value=provider_client)
    return factory


@pytest.fixture
def registry(providers) -> ChainServiceRegistry:
    return register_builtin_services(ChainServiceRegistry(providers))


class TestRegistry:
    def test_symbol_and_name_resolve_to_same_instance(self, registry) -> None:
        assert registry.get_service("eth") is registry.get_service("ethereum")

    def test_testnet_shares_mainnet_instance(self, registry) -> None:
        assert registry.get_service("ethereum-sepolia") is registry.get_service("ethereum")

    def test_unknown_chain_raises(self, registry) -> None:
        with pytest.raises(ChainServiceNotFoundError):
            registry.get_service("dogechain")

    def test_available_chains(self, registry) -> None:
        chains = registry.available_chains()
        assert "ethereum" in chains
        assert "solana-devnet" in chains
        assert registry.is_chain_available("MATIC") is True
        assert registry.is_chain_available("dogechain") is False

    def test_register_custom_type(self, providers) -> None:
        registry = ChainServiceRegistry(providers)
        registry.register_service_type("ethereum", EthereumService)
        assert isinstance(registry.get_service("ethereum"), EthereumService)
        assert registry.is_chain_available("polygon") is False


class TestProviderOverride:
    def test_proxy_is_cached(self, registry) -> None:
        first = registry.get_service_with_provider("ethereum", ProviderType.RPC)
        second = registry.get_service_with_provider("eth", ProviderType.RPC)
        assert first is second
        assert isinstance(first, ProviderOverrideProxy)

    def test_base_default_untouched(self, registry) -> None:
        base = registry.get_service("ethereum")
        before = base.get_default_provider()

        proxy = registry.get_service_with_provider("ethereum", ProviderType.RPC)
        proxy.set_default_provider(ProviderType.QUICKNODE)

        assert proxy.get_default_provider() == ProviderType.RPC
        assert base.get_default_provider() == before
        assert proxy.base is base

    @pytest.mark.asyncio
    async def test_proxy_fetches_with_pinned_provider(self, registry, providers) -> None:
        proxy = registry.get_service_with_provider("ethereum", ProviderType.RPC)

        await proxy.get_balances(EVM_ADDRESS, 1)

        providers.get_provider.assert_called_with(ChainName.ETHEREUM, ProviderType.RPC)

    @pytest.mark.asyncio
    async def test_base_uses_its_default(self, registry, providers) -> None:
        base = registry.get_service("ethereum")
        await base.get_balances(EVM_ADDRESS, 1)
        providers.get_provider.assert_called_with(ChainName.ETHEREUM, base.get_default_provider())

    def test_proxy_delegates_metadata(self, registry) -> None:
        proxy = registry.get_service_with_provider("polygon", ProviderType.RPC)
        assert proxy.get_chain_name(137) == "Polygon"
        assert proxy.get_chain_symbol(137) == "POL"
        assert proxy.is_valid_address(EVM_ADDRESS) is True

    def test_proxy_exposes_evm_capabilities(self, registry) -> None:
        base = registry.get_service("ethereum")
        proxy = registry.get_service_with_provider("ethereum", ProviderType.RPC)

        assert proxy.get_chain_id() == 1
        assert proxy.primary_chain == ChainName.ETHEREUM
        assert proxy.family == base.family

        proxy.set_chain_id(11155111)
        assert proxy.is_testnet() is True
        assert base.get_chain_id() == 11155111
        base.set_chain_id(1)

    def test_proxy_missing_attribute_raises(self, registry) -> None:
        proxy = registry.get_service_with_provider("ethereum", ProviderType.RPC)
        with pytest.raises(AttributeError):
            proxy.no_such_capability  # noqa: B018


class TestChainServices:
    @pytest.mark.asyncio
    async def test_testnet_chain_id_selects_testnet_network(
        self, providers, provider_client
    ) -> None:
        service = EthereumService(providers)

        result = await service.get_balances(EVM_ADDRESS, 11155111)

        provider_client.get_balances.assert_awaited_once_with(EVM_ADDRESS, NetworkType.TESTNET)
        assert "updatedAt" in result

    @pytest.mark.asyncio
    async def test_invalid_address_rejected(self, providers) -> None:
        with pytest.raises(InvalidAddressError):
            await EthereumService(providers).get_balances("0x123", 1)

    def test_foreign_chain_id_rejected(self, providers) -> None:
        with pytest.raises(ChainNotSupportedError):
            EthereumService(providers).resolve_chain(137)

    def test_evm_current_chain_id(self, providers) -> None:
        service = EthereumService(providers)
        assert service.get_chain_id() == 1
        assert service.is_testnet() is False
        service.set_chain_id(11155111)
        assert service.is_testnet() is True
        assert service.get_chain_name() == "Ethereum Sepolia"

    def test_solana_address_validation(self, providers) -> None:
        service = SolanaService(providers)
        assert service.is_valid_address(SOL_ADDRESS) is True
        assert service.is_valid_address(EVM_ADDRESS) is False
        assert service.get_chain_symbol() == "SOL"

    def test_is_supported_false_when_provider_unavailable(self, providers) -> None:
        providers.get_provider.side_effect = ProviderNotSupportedError("infura", "ethereum")
        assert EthereumService(providers).is_supported() is False


class TestCanonicalAddress:
    def test_evm_lowercased(self) -> None:
        assert canonical_address(ChainName.ETHEREUM, EVM_ADDRESS.upper().replace("0X", "0x")) == EVM_ADDRESS

    def test_solana_kept(self) -> None:
        assert canonical_address(ChainName.SOLANA, SOL_ADDRESS) == SOL_ADDRESS
