"""Endpoint tests through the ASGI app with services stubbed on app.state."""
import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bk_balances.application.schemas import (
    BalanceResponse,
    ChainOut,
    InvalidateResponse,
    PortfolioOut,
)
from src.bk_cache.application.fast_cache import FastCache
from src.bk_common.errors import BalanceFetchFailedError, ChainNotSupportedError
from src.bk_events.bus import EventBus
from src.bk_events.events import ADDRESS_ACTIVITY
from src.bk_webhook.application.service import WebhookEventService
from src.main import app

ADDRESS = "0x710a850ff60aa2f8e9e27ef1e7edef17a2e682d2"


@pytest.fixture
def balances():
    svc = MagicMock()
    svc.get_portfolio = AsyncMock(return_value=BalanceResponse(
        chain="ethereum", chainId=1, address=ADDRESS, provider=None,
        portfolio=PortfolioOut.model_validate({
            "nativeBalance": {"symbol": "ETH", "balance": "1", "decimals": 18},
            "tokens": [], "nfts": [], "updatedAt": 1,
        }),
    ))
    svc.invalidate = AsyncMock(return_value=InvalidateResponse(
        chain="ethereum", chainId=1, address=ADDRESS, deleted=2
    ))
    svc.list_chains = MagicMock(return_value=[
        ChainOut(chain="ethereum", chainId=1, name="Ethereum", symbol="ETH", testnet=False)
    ])
    app.state.balances = svc
    return svc


class TestBalanceEndpoints:
    @pytest.mark.asyncio
    async def test_get_balances(self, client, balances) -> None:
        resp = await client.get(f"/api/v1/balances/eth/{ADDRESS}", params={"provider": "rpc"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["portfolio"]["nativeBalance"]["symbol"] == "ETH"
        assert body["request_id"].startswith("req_")
        assert balances.get_portfolio.await_args.args[1:] == ("eth", ADDRESS, "rpc")

    @pytest.mark.asyncio
    async def test_app_error_envelope(self, client, balances) -> None:
        balances.get_portfolio.side_effect = ChainNotSupportedError("dogechain")

        resp = await client.get(f"/api/v1/balances/dogechain/{ADDRESS}")

        assert resp.status_code == 404
        assert resp.json()["code"] == 1001

    @pytest.mark.asyncio
    async def test_details_exposed_outside_production(self, client, balances) -> None:
        balances.get_portfolio.side_effect = BalanceFetchFailedError("ethereum", ADDRESS, "timeout")

        resp = await client.get(f"/api/v1/balances/ethereum/{ADDRESS}")

        assert resp.status_code == 503
        assert resp.json()["data"] == {"details": "timeout"}

    @pytest.mark.asyncio
    async def test_invalidate(self, client, balances) -> None:
        resp = await client.delete(f"/api/v1/balances/ethereum/{ADDRESS}/cache")
        assert resp.status_code == 200
        assert resp.json()["data"]["deleted"] == 2

    @pytest.mark.asyncio
    async def test_list_chains(self, client, balances) -> None:
        resp = await client.get("/api/v1/chains")
        assert resp.json()["data"][0]["chainId"] == 1


class TestWebhookEndpoint:
    @pytest.mark.asyncio
    async def test_signed_payload_accepted(self, client) -> None:
        management = MagicMock()
        management.webhook_url = "https://example.com/api/v1/webhook/alchemy"
        management.verify_signature = AsyncMock(return_value=True)
        bus = EventBus()
        received: list = []

        async def handler(event) -> None:
            received.append(event)

        bus.subscribe(ADDRESS_ACTIVITY, handler)
        app.state.webhook_events = WebhookEventService(management, bus)
        raw = json.dumps({
            "type": "ADDRESS_ACTIVITY",
            "event": {"network": "ETH_MAINNET", "activity": [{"fromAddress": ADDRESS}]},
        }).encode()
        signature = hmac.new(b"k", raw, hashlib.sha256).hexdigest()

        resp = await client.post(
            "/api/v1/webhook/alchemy",
            content=raw,
            headers={"x-alchemy-signature": signature, "content-type": "application/json"},
        )

        assert resp.status_code == 200
        assert resp.json()["data"] == {"addresses": 1}
        assert management.verify_signature.await_args.args[1:] == (signature, raw)
        assert received[0].address == ADDRESS

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, client) -> None:
        management = MagicMock()
        management.webhook_url = "https://example.com/api/v1/webhook/alchemy"
        management.verify_signature = AsyncMock(return_value=False)
        app.state.webhook_events = WebhookEventService(management, EventBus())
        raw = json.dumps({"type": "ADDRESS_ACTIVITY", "event": {"network": "ETH_MAINNET"}}).encode()

        resp = await client.post("/api/v1/webhook/alchemy", content=raw)

        assert resp.status_code == 401
        assert resp.json()["code"] == 5001


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_cache(self, client) -> None:
        app.state.cache = FastCache(None)
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok", "cache": "ok", "version": "0.1.0"}
