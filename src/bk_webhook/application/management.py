"""WebhookManagementService — keeps one ADDRESS_ACTIVITY subscription per chain.

Nothing here raises to callers: every operation returns bool / None / [] and
logs the cause. Subscription state is repaired by the next reconciliation
pass, so a failed call is never fatal to the request that triggered it.

Subscription creation runs lock → re-check → create → release, with the
lock held in the fast cache under lock:webhook:<chain>. A caller that finds
the lock taken returns None instead of waiting.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from config.settings import settings
from src.bk_cache.application.fast_cache import FastCache
from src.bk_cache.application.lock import DistributedLock
from src.bk_cache.domain.keys import webhook_lock_key
from src.bk_common.enums import CHAIN_TO_ALCHEMY_NETWORK, ChainName
from src.bk_webhook.domain.constants import (
    ADDRESS_ACTIVITY_TYPE,
    DEFAULT_MONITORED_ADDRESS,
)
from src.bk_webhook.domain.signature import validate_alchemy_signature
from src.bk_webhook.infrastructure.notify_client import WebhookProviderClient

logger = logging.getLogger(__name__)


@dataclass
class SigningKeyCacheEntry:
    key: str
    expires_at: float


class WebhookManagementService:
    def __init__(
        self,
        client: WebhookProviderClient,
        cache: FastCache,
        webhook_url: str = settings.WEBHOOK_URL,
        lock_ttl: int = settings.WEBHOOK_CREATE_LOCK_TTL_SECONDS,
        signing_key_ttl: float = settings.SIGNING_KEY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._cache = cache
        self.webhook_url = webhook_url
        self._lock_ttl = lock_ttl
        self._signing_key_ttl = signing_key_ttl
        self._clock = clock
        self._webhook_ids: dict[ChainName, str] = {}
        self._signing_keys: dict[tuple[str, ChainName], SigningKeyCacheEntry] = {}
        if not client.configured:
            logger.warning("Alchemy token is not configured, webhook management disabled")

    # ------------------------------------------------------------------
    # Subscription lookup
    # ------------------------------------------------------------------

    async def get_existing_webhooks(self) -> list[dict[str, Any]] | None:
        if not self._client.configured:
            return None
        try:
            return await self._client.list_webhooks()
        except Exception as exc:
            logger.error("Failed to list existing webhooks: %s", exc)
            return None

    def _matches(self, webhook: dict[str, Any], chain: ChainName, url: str) -> bool:
        return (
            webhook.get("network") == CHAIN_TO_ALCHEMY_NETWORK[chain]
            and webhook.get("webhook_type", ADDRESS_ACTIVITY_TYPE) == ADDRESS_ACTIVITY_TYPE
            and bool(webhook.get("is_active"))
            and webhook.get("webhook_url") == url
        )

    async def _find_webhook(self, chain: ChainName, url: str) -> dict[str, Any] | None:
        for webhook in await self.get_existing_webhooks() or []:
            if self._matches(webhook, chain, url):
                return webhook
        return None

    async def get_webhook_id_for_chain(self, chain: ChainName) -> str | None:
        cached = self._webhook_ids.get(chain)
        if cached:
            return cached
        webhook = await self._find_webhook(chain, self.webhook_url)
        if webhook is not None:
            self._webhook_ids[chain] = webhook["id"]
            return webhook["id"]
        return await self.create_new_webhook(chain)

    async def active_webhooks(self) -> list[tuple[ChainName, str]]:
        """(chain, webhook id) for every active subscription pointing at our URL."""
        result: list[tuple[ChainName, str]] = []
        for chain in CHAIN_TO_ALCHEMY_NETWORK:
            webhook_id = self._webhook_ids.get(chain)
            if webhook_id:
                result.append((chain, webhook_id))
        known = {chain for chain, _ in result}
        for webhook in await self.get_existing_webhooks() or []:
            for chain in CHAIN_TO_ALCHEMY_NETWORK:
                if chain not in known and self._matches(webhook, chain, self.webhook_url):
                    result.append((chain, webhook["id"]))
                    known.add(chain)
        return result

    # ------------------------------------------------------------------
    # Subscription creation
    # ------------------------------------------------------------------

    async def create_new_webhook(self, chain: ChainName) -> str | None:
        if not self._client.configured:
            return None
        if not self.webhook_url:
            logger.error("Webhook URL is not configured, cannot create webhook for %s", chain.value)
            return None

        lock = DistributedLock(self._cache, webhook_lock_key(chain), self._lock_ttl)
        if not await lock.acquire():
            logger.info("Webhook creation for %s already in progress, skipping", chain.value)
            return None

        try:
            # Another instance may have created it before we took the lock
            existing = await self._find_webhook(chain, self.webhook_url)
            if existing is not None:
                self._webhook_ids[chain] = existing["id"]
                return existing["id"]

            webhook_id = await self._client.create_webhook(
                self.webhook_url,
                CHAIN_TO_ALCHEMY_NETWORK[chain],
                [DEFAULT_MONITORED_ADDRESS],
            )
            self._webhook_ids[chain] = webhook_id
            logger.info("Created webhook %s for %s", webhook_id, chain.value)
            return webhook_id
        except Exception as exc:
            logger.error("Failed to create webhook for %s: %s", chain.value, exc)
            return None
        finally:
            await lock.release()

    # ------------------------------------------------------------------
    # Address maintenance
    # ------------------------------------------------------------------

    async def update_webhook_addresses(
        self,
        chain: ChainName,
        to_add: list[str] | None = None,
        to_remove: list[str] | None = None,
    ) -> bool:
        to_add = to_add or []
        to_remove = to_remove or []
        if not self._client.configured:
            logger.error("Cannot update webhook addresses: Alchemy token is not configured")
            return False

        webhook_id = await self.get_webhook_id_for_chain(chain)
        if not webhook_id:
            logger.error("No webhook found for chain: %s", chain.value)
            return False

        try:
            await self._client.update_webhook_addresses(webhook_id, to_add, to_remove)
        except Exception as exc:
            logger.error("Failed to update webhook addresses for %s: %s", chain.value, exc)
            return False

        logger.debug(
            "Updated %s webhook addresses: +%d -%d", chain.value, len(to_add), len(to_remove)
        )
        return True

    async def list_subscribed_addresses(self, chain: ChainName, webhook_id: str) -> list[str]:
        try:
            return await self._client.list_addresses(webhook_id)
        except Exception as exc:
            logger.error("Failed to list addresses of webhook %s (%s): %s",
                         webhook_id, chain.value, exc)
            return []

    # ------------------------------------------------------------------
    # Signing keys
    # ------------------------------------------------------------------

    async def get_signing_key(
        self, chain: ChainName, webhook_url: str | None = None
    ) -> str | None:
        url = webhook_url or self.webhook_url
        cache_key = (url, chain)
        entry = self._signing_keys.get(cache_key)
        if entry is not None and entry.expires_at > self._clock():
            return entry.key

        webhook = await self._find_webhook(chain, url)
        if webhook is None or not webhook.get("signing_key"):
            logger.warning("No signing key found for %s on %s", url, chain.value)
            self._signing_keys.pop(cache_key, None)
            return None

        key = webhook["signing_key"]
        self._signing_keys[cache_key] = SigningKeyCacheEntry(
            key=key, expires_at=self._clock() + self._signing_key_ttl
        )
        return key

    async def verify_signature(
        self,
        chain: ChainName,
        signature: str | None,
        raw_body: bytes,
        webhook_url: str | None = None,
    ) -> bool:
        url = webhook_url or self.webhook_url
        signing_key = await self.get_signing_key(chain, url)
        if signing_key is None:
            return False
        if validate_alchemy_signature(signature, raw_body, signing_key):
            return True
        # The key may have been rotated; fetch it again next time
        self.clear_signing_key_cache(url, chain)
        logger.warning("Webhook signature verification failed for %s", chain.value)
        return False

    def clear_signing_key_cache(
        self, url: str | None = None, chain: ChainName | None = None
    ) -> None:
        if url is not None and chain is not None:
            self._signing_keys.pop((url, chain), None)
            return
        for cached_url, cached_chain in list(self._signing_keys):
            if (url is None or cached_url == url) and (chain is None or cached_chain == chain):
                del self._signing_keys[(cached_url, cached_chain)]
        logger.debug("Cleared signing key cache (url=%s, chain=%s)", url, chain)
