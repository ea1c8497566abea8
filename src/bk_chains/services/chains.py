"""Concrete chain services and the static registration table."""

from src.bk_chains.services.base import (
    AbstractChainService,
    AbstractEvmChainService,
    AbstractSolanaChainService,
)
from src.bk_common.enums import ChainName


class EthereumService(AbstractEvmChainService):
    chains = (ChainName.ETHEREUM, ChainName.ETHEREUM_SEPOLIA)
    display_names = {
        ChainName.ETHEREUM: "Ethereum",
        ChainName.ETHEREUM_SEPOLIA: "Ethereum Sepolia",
    }


class PolygonService(AbstractEvmChainService):
    chains = (ChainName.POLYGON, ChainName.POLYGON_AMOY)
    display_names = {
        ChainName.POLYGON: "Polygon",
        ChainName.POLYGON_AMOY: "Polygon Amoy",
    }


class BscService(AbstractEvmChainService):
    chains = (ChainName.BSC, ChainName.BSC_TESTNET)
    display_names = {
        ChainName.BSC: "BNB Smart Chain",
        ChainName.BSC_TESTNET: "BNB Smart Chain Testnet",
    }


class SolanaService(AbstractSolanaChainService):
    chains = (ChainName.SOLANA, ChainName.SOLANA_DEVNET)
    display_names = {
        ChainName.SOLANA: "Solana",
        ChainName.SOLANA_DEVNET: "Solana Devnet",
    }


# Adding a chain: write the service class and list it here.
BUILTIN_CHAIN_SERVICES: tuple[type[AbstractChainService], ...] = (
    EthereumService,
    PolygonService,
    BscService,
    SolanaService,
)
