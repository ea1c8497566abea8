"""Tests for AlchemyNotifyClient against an httpx MockTransport."""
import json

import httpx
import pytest

from src.bk_common.errors import ProviderRequestError
from src.bk_webhook.infrastructure.notify_client import AlchemyNotifyClient

BASE_URL = "https://dashboard.test/api"


def _client(handler) -> AlchemyNotifyClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return AlchemyNotifyClient(http, token="tok", base_url=BASE_URL)


class TestAlchemyNotifyClient:
    @pytest.mark.asyncio
    async def test_list_webhooks_sends_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [{"id": "wh_1"}]})

        client = _client(handler)
        assert await client.list_webhooks() == [{"id": "wh_1"}]
        assert seen[0].headers["X-Alchemy-Token"] == "tok"
        assert seen[0].url.path == "/api/team-webhooks"
        await client.close()

    @pytest.mark.asyncio
    async def test_create_webhook_payload(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"id": "wh_9"}})

        client = _client(handler)
        webhook_id = await client.create_webhook("https://hook", "ETH_MAINNET", ["0xa"])

        assert webhook_id == "wh_9"
        assert bodies[0] == {
            "network": "ETH_MAINNET",
            "webhook_type": "ADDRESS_ACTIVITY",
            "webhook_url": "https://hook",
            "addresses": ["0xa"],
        }
        await client.close()

    @pytest.mark.asyncio
    async def test_list_addresses_follows_cursor(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("after") == "c1":
                return httpx.Response(200, json={"data": ["0xb"], "pagination": {"cursors": {}}})
            return httpx.Response(
                200, json={"data": ["0xa"], "pagination": {"cursors": {"after": "c1"}}}
            )

        client = _client(handler)
        assert await client.list_addresses("wh_1") == ["0xa", "0xb"]
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        client = _client(lambda request: httpx.Response(500, json={"message": "boom"}))
        with pytest.raises(ProviderRequestError):
            await client.update_webhook_addresses("wh_1", ["0xa"], [])
        await client.close()

    def test_configured_requires_token(self) -> None:
        assert AlchemyNotifyClient(httpx.AsyncClient(), token="").configured is False
