"""Domain models for bk_portfolio — pure dataclasses plus shape conversion.

Two shapes of the same balances exist:
  - cache-facing (what callers and the fast cache see):
      {"nativeBalance": {...}, "tokens": [...], "nfts": [...], "updatedAt": ms}
  - durable (what portfolio_snapshots stores):
      native / fungibles / nfts columns
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

DEFAULT_NATIVE_DECIMALS = 18


@dataclass
class PortfolioSnapshot:
    chain: str
    chain_id: int
    address: str
    provider: str | None
    native: dict[str, Any]
    fungibles: list[dict[str, Any]]
    nfts: list[dict[str, Any]]
    expires_at: datetime
    webhook_monitored: bool | None = None
    block_number: int = 0
    updated_at: datetime | None = None


@dataclass
class MonitoredAddress:
    """Projection used by webhook reconciliation."""

    address: str
    expires_at: datetime
    webhook_monitored: bool | None


@dataclass
class DurablePortfolio:
    """Durable columns extracted from a cache-facing payload."""

    native: dict[str, Any]
    fungibles: list[dict[str, Any]] = field(default_factory=list)
    nfts: list[dict[str, Any]] = field(default_factory=list)
    block_number: int = 0


def to_durable(data: dict[str, Any]) -> DurablePortfolio:
    """Accepts either shape; durable keys win when both are present."""
    native = data.get("native") or data.get("nativeBalance") or {}
    fungibles = data.get("fungibles")
    if fungibles is None:
        fungibles = data.get("tokens") or []
    return DurablePortfolio(
        native=dict(native),
        fungibles=list(fungibles),
        nfts=list(data.get("nfts") or []),
        block_number=int(data.get("blockNumber") or 0),
    )


def to_balance_response(snapshot: PortfolioSnapshot) -> dict[str, Any]:
    native = snapshot.native
    return {
        "nativeBalance": {
            "symbol": native.get("symbol"),
            "balance": native.get("balance"),
            "decimals": native.get("decimals") or DEFAULT_NATIVE_DECIMALS,
            "usd": native.get("usd"),
        },
        "tokens": [
            {
                "address": token.get("address"),
                "symbol": token.get("symbol"),
                "name": token.get("name"),
                "balance": token.get("balance"),
                "decimals": token.get("decimals"),
                "usd": token.get("usd"),
                "logo": token.get("logo"),
            }
            for token in snapshot.fungibles
        ],
        "nfts": list(snapshot.nfts),
        "updatedAt": int(time.time() * 1000),
    }
