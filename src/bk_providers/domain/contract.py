"""Provider client contract and native asset table."""

from typing import Any, Protocol

from src.bk_common.enums import ChainName, NetworkType, ProviderType


class BalanceProvider(Protocol):
    provider_type: ProviderType

    async def get_balances(
        self, address: str, network_type: NetworkType
    ) -> dict[str, Any]:
        """Return {"nativeBalance": {...}, "tokens": [...], "nfts": [...]}."""
        ...

    def is_supported(self) -> bool: ...


# (symbol, decimals) of each chain's native asset
NATIVE_ASSETS: dict[ChainName, tuple[str, int]] = {
    ChainName.ETHEREUM: ("ETH", 18),
    ChainName.ETHEREUM_SEPOLIA: ("ETH", 18),
    ChainName.POLYGON: ("POL", 18),
    ChainName.POLYGON_AMOY: ("POL", 18),
    ChainName.BSC: ("BNB", 18),
    ChainName.BSC_TESTNET: ("tBNB", 18),
    ChainName.SOLANA: ("SOL", 9),
    ChainName.SOLANA_DEVNET: ("SOL", 9),
}
