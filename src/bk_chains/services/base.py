"""Chain service base classes.

A service class serves one mainnet plus its testnets, listed in `chains`.
The registry creates one instance per class and shares it between those
chains, so per-call choices (chain id, provider) are passed as arguments
rather than stored on the instance.
"""

import logging
import re
import time
from typing import Any

from config.settings import settings
from src.bk_common.enums import (
    CHAIN_IDS,
    TESTNETS,
    ChainFamily,
    ChainName,
    NetworkType,
    ProviderType,
    chain_name_for_id,
    parse_provider,
)
from src.bk_common.errors import (
    ChainNotSupportedError,
    InvalidAddressError,
    ProviderNotSupportedError,
)
from src.bk_providers.application.factory import ProviderFactory
from src.bk_providers.domain.contract import NATIVE_ASSETS

logger = logging.getLogger(__name__)

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SOLANA_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class AbstractChainService:
    chains: tuple[ChainName, ...] = ()
    family: ChainFamily = ChainFamily.EVM
    display_names: dict[ChainName, str] = {}

    def __init__(
        self,
        providers: ProviderFactory,
        default_provider: ProviderType | None = None,
    ) -> None:
        self._providers = providers
        self._default_provider = (
            default_provider
            or parse_provider(settings.DEFAULT_PROVIDER)
            or ProviderType.ALCHEMY
        )

    # --- provider selection ---

    def get_default_provider(self) -> ProviderType:
        return self._default_provider

    def set_default_provider(self, provider: ProviderType) -> None:
        self._default_provider = provider

    # --- chain metadata ---

    @property
    def primary_chain(self) -> ChainName:
        return self.chains[0]

    def resolve_chain(self, chain_id: int | None = None) -> ChainName:
        if chain_id is None:
            return self.primary_chain
        chain = chain_name_for_id(chain_id)
        if chain is None or chain not in self.chains:
            raise ChainNotSupportedError(str(chain_id))
        return chain

    def get_chain_name(self, chain_id: int | None = None) -> str:
        chain = self.resolve_chain(chain_id)
        return self.display_names.get(chain, chain.value)

    def get_chain_symbol(self, chain_id: int | None = None) -> str:
        return NATIVE_ASSETS[self.resolve_chain(chain_id)][0]

    def is_valid_address(self, address: str) -> bool:
        raise NotImplementedError

    def is_supported(self, provider: ProviderType | None = None) -> bool:
        try:
            return self._providers.get_provider(
                self.primary_chain, provider or self.get_default_provider()
            ).is_supported()
        except ProviderNotSupportedError:
            return False

    # --- balances ---

    async def get_balances(
        self,
        address: str,
        chain_id: int | None = None,
        provider: ProviderType | None = None,
    ) -> dict[str, Any]:
        chain = self.resolve_chain(chain_id)
        if not self.is_valid_address(address):
            raise InvalidAddressError(chain.value, address)

        provider_type = provider or self.get_default_provider()
        network = NetworkType.TESTNET if chain in TESTNETS else NetworkType.MAINNET
        client = self._providers.get_provider(chain, provider_type)
        logger.debug(
            "Fetching %s balances for %s via %s", chain.value, address, provider_type.value
        )
        data = await client.get_balances(address, network)
        return {**data, "updatedAt": int(time.time() * 1000)}


class AbstractEvmChainService(AbstractChainService):
    """EVM family: one service instance switches between networks by chain id."""

    family = ChainFamily.EVM

    def __init__(
        self,
        providers: ProviderFactory,
        default_provider: ProviderType | None = None,
    ) -> None:
        super().__init__(providers, default_provider)
        self._current_chain_id = CHAIN_IDS[self.primary_chain]

    def set_chain_id(self, chain_id: int) -> None:
        self.resolve_chain(chain_id)
        self._current_chain_id = chain_id
        logger.debug("%s current chain id set to %d", type(self).__name__, chain_id)

    def get_chain_id(self) -> int:
        return self._current_chain_id

    def resolve_chain(self, chain_id: int | None = None) -> ChainName:
        return super().resolve_chain(
            self._current_chain_id if chain_id is None else chain_id
        )

    def is_testnet(self) -> bool:
        return self.resolve_chain() in TESTNETS

    def is_valid_address(self, address: str) -> bool:
        return bool(_EVM_ADDRESS_RE.match(address or ""))


class AbstractSolanaChainService(AbstractChainService):
    family = ChainFamily.SOLANA

    def is_valid_address(self, address: str) -> bool:
        return bool(_SOLANA_ADDRESS_RE.match(address or ""))


def canonical_address(chain: ChainName, address: str) -> str:
    """Form used in cache keys and durable rows. EVM hex is case-insensitive."""
    if chain in (ChainName.SOLANA, ChainName.SOLANA_DEVNET):
        return address.strip()
    return address.strip().lower()
