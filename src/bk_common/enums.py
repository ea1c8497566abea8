"""Global enums and static chain tables.

CHAIN_IDS is the single source for chain-id inference (cache keys) and the
reverse lookup used by chain-id dispatch.
"""

from enum import Enum


class ChainName(str, Enum):
    ETHEREUM = "ethereum"
    ETHEREUM_SEPOLIA = "ethereum-sepolia"
    POLYGON = "polygon"
    POLYGON_AMOY = "polygon-amoy"
    BSC = "bsc"
    BSC_TESTNET = "bsc-testnet"
    SOLANA = "solana"
    SOLANA_DEVNET = "solana-devnet"


class ProviderType(str, Enum):
    ALCHEMY = "alchemy"
    RPC = "rpc"
    INFURA = "infura"
    QUICKNODE = "quicknode"


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


class ChainFamily(str, Enum):
    EVM = "evm"
    SOLANA = "solana"


CHAIN_IDS: dict[ChainName, int] = {
    ChainName.ETHEREUM: 1,
    ChainName.ETHEREUM_SEPOLIA: 11155111,
    ChainName.POLYGON: 137,
    ChainName.POLYGON_AMOY: 80002,
    ChainName.BSC: 56,
    ChainName.BSC_TESTNET: 97,
    ChainName.SOLANA: 101,
    ChainName.SOLANA_DEVNET: 103,
}

TESTNETS: frozenset[ChainName] = frozenset({
    ChainName.ETHEREUM_SEPOLIA,
    ChainName.POLYGON_AMOY,
    ChainName.BSC_TESTNET,
    ChainName.SOLANA_DEVNET,
})

# Coin symbols / aliases accepted wherever a chain name is expected
COIN_SYMBOL_TO_CHAIN: dict[str, ChainName] = {
    "eth": ChainName.ETHEREUM,
    "ether": ChainName.ETHEREUM,
    "sepolia": ChainName.ETHEREUM_SEPOLIA,
    "matic": ChainName.POLYGON,
    "pol": ChainName.POLYGON,
    "amoy": ChainName.POLYGON_AMOY,
    "bnb": ChainName.BSC,
    "sol": ChainName.SOLANA,
    "devnet": ChainName.SOLANA_DEVNET,
}

# Alchemy Notify network identifiers
CHAIN_TO_ALCHEMY_NETWORK: dict[ChainName, str] = {
    ChainName.ETHEREUM: "ETH_MAINNET",
    ChainName.ETHEREUM_SEPOLIA: "ETH_SEPOLIA",
    ChainName.POLYGON: "MATIC_MAINNET",
    ChainName.POLYGON_AMOY: "MATIC_AMOY",
    ChainName.BSC: "BNB_MAINNET",
    ChainName.BSC_TESTNET: "BNB_TESTNET",
    ChainName.SOLANA: "SOLANA_MAINNET",
    ChainName.SOLANA_DEVNET: "SOLANA_DEVNET",
}

ALCHEMY_NETWORK_TO_CHAIN: dict[str, ChainName] = {
    network: chain for chain, network in CHAIN_TO_ALCHEMY_NETWORK.items()
}


def normalize_chain_input(value: str) -> str:
    """Map a chain name or coin symbol to its canonical lowercase chain name.

    Unknown input is returned lowercased so callers can produce their own
    not-found error.
    """
    lowered = value.strip().lower()
    if lowered in COIN_SYMBOL_TO_CHAIN:
        return COIN_SYMBOL_TO_CHAIN[lowered].value
    return lowered


def chain_from_input(value: str) -> ChainName | None:
    try:
        return ChainName(normalize_chain_input(value))
    except ValueError:
        return None


def chain_name_for_id(chain_id: int) -> ChainName | None:
    for chain, known_id in CHAIN_IDS.items():
        if known_id == chain_id:
            return chain
    return None


def parse_provider(value: str | None) -> ProviderType | None:
    """Case-insensitive provider lookup; None for missing or unknown input."""
    if not value:
        return None
    try:
        return ProviderType(value.strip().lower())
    except ValueError:
        return None
