"""JSON-RPC native balance clients (EVM eth_getBalance, Solana getBalance).

Token and NFT listings are provider-specific and are returned empty here.
"""

import logging
from typing import Any

import httpx

from src.bk_common.enums import ChainFamily, ChainName, NetworkType, ProviderType
from src.bk_common.errors import ProviderRequestError
from src.bk_providers.domain.contract import NATIVE_ASSETS

logger = logging.getLogger(__name__)


class JsonRpcBalanceProvider:
    """Native balance over JSON-RPC for one mainnet/testnet chain pair."""

    def __init__(
        self,
        provider_type: ProviderType,
        family: ChainFamily,
        endpoints: dict[NetworkType, tuple[ChainName, str]],
        client: httpx.AsyncClient,
    ) -> None:
        self.provider_type = provider_type
        self.family = family
        self._endpoints = endpoints
        self._client = client

    def is_supported(self) -> bool:
        return any(url for _, url in self._endpoints.values())

    async def get_balances(
        self, address: str, network_type: NetworkType
    ) -> dict[str, Any]:
        if network_type not in self._endpoints:
            raise ProviderRequestError(
                self.provider_type.value, f"no {network_type.value} endpoint"
            )
        chain, url = self._endpoints[network_type]
        if not url:
            raise ProviderRequestError(
                self.provider_type.value, f"{chain.value} endpoint not configured"
            )

        if self.family == ChainFamily.SOLANA:
            result = await self._call(url, "getBalance", [address])
            raw = int(result["value"])
        else:
            result = await self._call(url, "eth_getBalance", [address, "latest"])
            raw = int(result, 16)

        symbol, decimals = NATIVE_ASSETS[chain]
        return {
            "nativeBalance": {
                "symbol": symbol,
                "balance": str(raw),
                "decimals": decimals,
            },
            "tokens": [],
            "nfts": [],
        }

    async def _call(self, url: str, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("%s %s request failed: %s", self.provider_type.value, method, exc)
            raise ProviderRequestError(self.provider_type.value, str(exc)) from exc

        if body.get("error"):
            raise ProviderRequestError(self.provider_type.value, str(body["error"]))
        return body.get("result")
