"""Alchemy Notify (dashboard) API client.

Endpoints used:
  GET   /team-webhooks              list subscriptions (incl. signing_key)
  POST  /create-webhook             create an ADDRESS_ACTIVITY subscription
  PATCH /update-webhook-addresses   add/remove addresses
  GET   /webhook-addresses          paginated address list

Every call raises ProviderRequestError on transport or HTTP failure; the
management service turns those into bool/None results.
"""

import logging
from typing import Any, Protocol

import httpx

from config.settings import settings
from src.bk_common.errors import ProviderRequestError
from src.bk_webhook.domain.constants import ADDRESS_ACTIVITY_TYPE

logger = logging.getLogger(__name__)

_PROVIDER = "alchemy-notify"
_ADDRESS_PAGE_SIZE = 100


class WebhookProviderClient(Protocol):
    @property
    def configured(self) -> bool: ...

    async def list_webhooks(self) -> list[dict[str, Any]]: ...

    async def create_webhook(
        self, webhook_url: str, network: str, addresses: list[str]
    ) -> str: ...

    async def update_webhook_addresses(
        self, webhook_id: str, to_add: list[str], to_remove: list[str]
    ) -> None: ...

    async def list_addresses(self, webhook_id: str) -> list[str]: ...


class AlchemyNotifyClient:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        token: str = settings.ALCHEMY_TOKEN,
        base_url: str = settings.ALCHEMY_DASHBOARD_URL,
    ) -> None:
        self._token = token
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS),
        )

    @property
    def configured(self) -> bool:
        return bool(self._token)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers={"X-Alchemy-Token": self._token},
            )
            response.raise_for_status()
            return response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderRequestError(_PROVIDER, f"{method} {path}: {exc}") from exc

    async def list_webhooks(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/team-webhooks")
        data = body.get("data")
        if not isinstance(data, list):
            logger.warning("Unexpected team-webhooks response shape: %s", list(body))
            return []
        return data

    async def create_webhook(
        self, webhook_url: str, network: str, addresses: list[str]
    ) -> str:
        body = await self._request(
            "POST",
            "/create-webhook",
            json={
                "network": network,
                "webhook_type": ADDRESS_ACTIVITY_TYPE,
                "webhook_url": webhook_url,
                "addresses": addresses,
            },
        )
        webhook_id = (body.get("data") or {}).get("id")
        if not webhook_id:
            raise ProviderRequestError(_PROVIDER, "create-webhook returned no id")
        return str(webhook_id)

    async def update_webhook_addresses(
        self, webhook_id: str, to_add: list[str], to_remove: list[str]
    ) -> None:
        await self._request(
            "PATCH",
            "/update-webhook-addresses",
            json={
                "webhook_id": webhook_id,
                "addresses_to_add": to_add,
                "addresses_to_remove": to_remove,
            },
        )

    async def list_addresses(self, webhook_id: str) -> list[str]:
        addresses: list[str] = []
        after: str | None = None
        while True:
            params: dict[str, Any] = {"webhook_id": webhook_id, "limit": _ADDRESS_PAGE_SIZE}
            if after:
                params["after"] = after
            body = await self._request("GET", "/webhook-addresses", params=params)
            addresses.extend(body.get("data") or [])
            after = ((body.get("pagination") or {}).get("cursors") or {}).get("after")
            if not after:
                return addresses

    async def close(self) -> None:
        await self._client.aclose()
