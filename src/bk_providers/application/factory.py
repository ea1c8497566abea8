"""ProviderFactory — resolves (chain, provider type) to a balance client.

Clients are built once per (mainnet chain, provider) and shared; each one
serves the mainnet and its testnet, picked per call by NetworkType.
"""

import logging

import httpx

from config.settings import settings
from src.bk_common.enums import (
    ChainFamily,
    ChainName,
    NetworkType,
    ProviderType,
)
from src.bk_common.errors import ProviderNotSupportedError
from src.bk_providers.domain.contract import BalanceProvider
from src.bk_providers.infrastructure.json_rpc import JsonRpcBalanceProvider

logger = logging.getLogger(__name__)

# mainnet → testnet
NETWORK_PAIRS: dict[ChainName, ChainName] = {
    ChainName.ETHEREUM: ChainName.ETHEREUM_SEPOLIA,
    ChainName.POLYGON: ChainName.POLYGON_AMOY,
    ChainName.BSC: ChainName.BSC_TESTNET,
    ChainName.SOLANA: ChainName.SOLANA_DEVNET,
}

ALCHEMY_SUBDOMAINS: dict[ChainName, str] = {
    ChainName.ETHEREUM: "eth-mainnet",
    ChainName.ETHEREUM_SEPOLIA: "eth-sepolia",
    ChainName.POLYGON: "polygon-mainnet",
    ChainName.POLYGON_AMOY: "polygon-amoy",
    ChainName.BSC: "bnb-mainnet",
    ChainName.BSC_TESTNET: "bnb-testnet",
    ChainName.SOLANA: "solana-mainnet",
    ChainName.SOLANA_DEVNET: "solana-devnet",
}

PUBLIC_RPC_URLS: dict[ChainName, str] = {
    ChainName.ETHEREUM: "https://eth-mainnet.public.blastapi.io",
    ChainName.ETHEREUM_SEPOLIA: "https://eth-sepolia.public.blastapi.io",
    ChainName.POLYGON: "https://polygon-rpc.com",
    ChainName.POLYGON_AMOY: "https://rpc-amoy.polygon.technology",
    ChainName.BSC: "https://bsc-dataseed.binance.org",
    ChainName.BSC_TESTNET: "https://data-seed-prebsc-1-s1.binance.org:8545",
    ChainName.SOLANA: "https://api.mainnet-beta.solana.com",
    ChainName.SOLANA_DEVNET: "https://api.devnet.solana.com",
}


def mainnet_of(chain: ChainName) -> ChainName:
    for mainnet, testnet in NETWORK_PAIRS.items():
        if chain == testnet:
            return mainnet
    return chain


def _alchemy_url(chain: ChainName) -> str:
    if not settings.ALCHEMY_API_KEY:
        return ""
    return f"https://{ALCHEMY_SUBDOMAINS[chain]}.g.alchemy.com/v2/{settings.ALCHEMY_API_KEY}"


def _rpc_url(chain: ChainName) -> str:
    return settings.RPC_URL_OVERRIDES.get(chain.value, PUBLIC_RPC_URLS[chain])


_URL_BUILDERS = {
    ProviderType.ALCHEMY: _alchemy_url,
    ProviderType.RPC: _rpc_url,
}


class ProviderFactory:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS)
        )
        self._providers: dict[tuple[ChainName, ProviderType], BalanceProvider] = {}

    def register(
        self, chain: ChainName, provider_type: ProviderType, provider: BalanceProvider
    ) -> None:
        self._providers[(mainnet_of(chain), provider_type)] = provider

    def get_provider(self, chain: ChainName, provider_type: ProviderType) -> BalanceProvider:
        mainnet = mainnet_of(chain)
        key = (mainnet, provider_type)
        if key in self._providers:
            return self._providers[key]

        build_url = _URL_BUILDERS.get(provider_type)
        if build_url is None:
            raise ProviderNotSupportedError(provider_type.value, chain.value)

        testnet = NETWORK_PAIRS[mainnet]
        provider = JsonRpcBalanceProvider(
            provider_type,
            ChainFamily.SOLANA if mainnet == ChainName.SOLANA else ChainFamily.EVM,
            {
                NetworkType.MAINNET: (mainnet, build_url(mainnet)),
                NetworkType.TESTNET: (testnet, build_url(testnet)),
            },
            self._client,
        )
        self._providers[key] = provider
        logger.debug("Built %s provider for %s", provider_type.value, mainnet.value)
        return provider

    async def close(self) -> None:
        await self._client.aclose()
