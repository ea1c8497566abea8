"""Pydantic schemas for bk_balances API responses.

Field names follow the cache-facing portfolio shape (camelCase), which is
also what the fast cache stores.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class NativeBalanceOut(BaseModel):
    symbol: str | None = None
    balance: str | None = None
    decimals: int | None = None
    usd: float | None = None


class TokenBalanceOut(BaseModel):
    address: str | None = None
    symbol: str | None = None
    name: str | None = None
    balance: str | None = None
    decimals: int | None = None
    usd: float | None = None
    logo: str | None = None


class PortfolioOut(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nativeBalance: NativeBalanceOut
    tokens: list[TokenBalanceOut] = []
    nfts: list[dict[str, Any]] = []
    updatedAt: int | None = None


class BalanceResponse(BaseModel):
    chain: str
    chainId: int
    address: str
    provider: str | None
    portfolio: PortfolioOut


class ChainOut(BaseModel):
    chain: str
    chainId: int
    name: str
    symbol: str
    testnet: bool


class InvalidateResponse(BaseModel):
    chain: str
    chainId: int
    address: str
    deleted: int
