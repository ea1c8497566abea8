# tests/unit/test_portfolio_persistence.py
"""Unit tests for PortfolioRepository using MagicMock AsyncSession."""
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bk_portfolio.infrastructure.persistence import PortfolioRepository

ADDRESS = "0x710a850ff60aa2f8e9e27ef1e7edef17a2e682d2"


def _make_snapshot_row(**kwargs):
    """Build a mock DB row with all required fields."""
    row = MagicMock()
    row.chain = kwargs.get("chain", "ethereum")
    row.chain_id = kwargs.get("chain_id", 1)
    row.address = kwargs.get("address", ADDRESS)
    row.provider = kwargs.get("provider", "")
    row.native = kwargs.get("native", '{"symbol": "ETH", "balance": "1"}')
    row.fungibles = kwargs.get("fungibles", [])
    row.nfts = kwargs.get("nfts")
    row.block_number = 0
    row.expires_at = datetime.now(UTC) + timedelta(minutes=30)
    row.webhook_monitored = kwargs.get("webhook_monitored")
    row.updated_at = datetime.now(UTC)
    return row


@pytest.fixture
def db():
    session = MagicMock()
    session.begin_nested.return_value.__aenter__ = AsyncMock()
    session.begin_nested.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


class TestGetSnapshot:
    @pytest.mark.asyncio
    async def test_maps_row(self, db):
        result_mock = MagicMock()
        result_mock.fetchone.return_value = _make_snapshot_row()
        db.execute = AsyncMock(return_value=result_mock)

        snapshot = await PortfolioRepository().get_snapshot(db, 1, ADDRESS, None)

        assert snapshot is not None
        assert snapshot.provider is None  # '' column means chain default
        assert snapshot.native == {"symbol": "ETH", "balance": "1"}
        assert snapshot.nfts == []
        params = db.execute.await_args.args[1]
        assert params["provider"] is None
        assert "now" in params

    @pytest.mark.asyncio
    async def test_returns_none_when_not_found(self, db):
        result_mock = MagicMock()
        result_mock.fetchone.return_value = None
        db.execute = AsyncMock(return_value=result_mock)

        assert await PortfolioRepository().get_snapshot(db, 1, ADDRESS, "alchemy") is None


class TestSaveSnapshot:
    @pytest.mark.asyncio
    async def test_upsert_then_history(self, db):
        db.execute = AsyncMock()
        data = {"nativeBalance": {"symbol": "ETH", "balance": "5"}, "tokens": [{"symbol": "USDC"}]}

        await PortfolioRepository().save_snapshot(db, "ethereum", 1, ADDRESS, data, None, 1800)

        assert db.execute.await_count == 2
        upsert_params = db.execute.await_args_list[0].args[1]
        assert upsert_params["provider"] == ""
        assert json.loads(upsert_params["fungibles"]) == [{"symbol": "USDC"}]
        assert upsert_params["expires_at"] > datetime.now(UTC) + timedelta(minutes=29)

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_save(self, db):
        db.execute = AsyncMock(side_effect=[MagicMock(), RuntimeError("history table locked")])

        await PortfolioRepository().save_snapshot(
            db, "ethereum", 1, ADDRESS, {"native": {"balance": "1"}}, "rpc", 60
        )

        assert db.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_native_skips_history(self, db):
        db.execute = AsyncMock()

        await PortfolioRepository().save_snapshot(db, "ethereum", 1, ADDRESS, {}, None, 60)

        assert db.execute.await_count == 1


class TestMonitoring:
    @pytest.mark.asyncio
    async def test_set_monitored_false_stores_null(self, db):
        result_mock = MagicMock()
        result_mock.rowcount = 2
        db.execute = AsyncMock(return_value=result_mock)

        updated = await PortfolioRepository().set_webhook_monitored(
            db, "ethereum", ["0xa", "0xb"], False
        )

        assert updated == 2
        assert db.execute.await_args.args[1]["monitored"] is None

    @pytest.mark.asyncio
    async def test_set_monitored_empty_list_is_noop(self, db):
        db.execute = AsyncMock()
        assert await PortfolioRepository().set_webhook_monitored(db, "ethereum", [], True) == 0
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_candidates_mapped(self, db):
        result_mock = MagicMock()
        result_mock.fetchall.return_value = [_make_snapshot_row(webhook_monitored=True)]
        db.execute = AsyncMock(return_value=result_mock)

        rows = await PortfolioRepository().list_monitoring_candidates(db, "ethereum")

        assert rows[0].address == ADDRESS
        assert rows[0].webhook_monitored is True

    @pytest.mark.asyncio
    async def test_invalidate_returns_rowcount(self, db):
        result_mock = MagicMock()
        result_mock.rowcount = 3
        db.execute = AsyncMock(return_value=result_mock)

        assert await PortfolioRepository().invalidate_address(db, "ethereum", 1, ADDRESS) == 3
