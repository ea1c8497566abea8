# src/bk_portfolio/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_portfolio.domain.models import MonitoredAddress, PortfolioSnapshot


class PortfolioRepositoryProtocol(Protocol):
    async def get_snapshot(
        self,
        db: AsyncSession,
        chain_id: int,
        address: str,
        provider: str | None,
    ) -> PortfolioSnapshot | None: ...

    async def save_snapshot(
        self,
        db: AsyncSession,
        chain: str,
        chain_id: int,
        address: str,
        data: dict[str, Any],
        provider: str | None,
        ttl_seconds: int,
    ) -> None: ...

    async def invalidate_address(
        self,
        db: AsyncSession,
        chain: str,
        chain_id: int,
        address: str,
    ) -> int: ...

    async def list_chains_with_snapshots(self, db: AsyncSession) -> list[str]: ...

    async def list_monitoring_candidates(
        self,
        db: AsyncSession,
        chain: str,
    ) -> list[MonitoredAddress]: ...

    async def list_live_addresses(
        self,
        db: AsyncSession,
        chain: str,
    ) -> set[str]: ...

    async def set_webhook_monitored(
        self,
        db: AsyncSession,
        chain: str,
        addresses: list[str],
        monitored: bool,
    ) -> int: ...
