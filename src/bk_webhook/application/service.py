"""Inbound webhook processing.

Verifies the signature against the raw body, then turns an ADDRESS_ACTIVITY
notification into one address.activity event per distinct address touched.
The address-activity listener does the actual cache invalidation.
"""

import json
import logging
from typing import Any

from src.bk_chains.services.base import canonical_address
from src.bk_common.enums import ALCHEMY_NETWORK_TO_CHAIN, CHAIN_IDS, ChainName
from src.bk_common.errors import (
    InvalidWebhookPayloadError,
    InvalidWebhookSignatureError,
    WebhookNotConfiguredError,
)
from src.bk_events.bus import EventBus
from src.bk_events.events import ADDRESS_ACTIVITY, AddressActivityEvent
from src.bk_webhook.application.management import WebhookManagementService
from src.bk_webhook.domain.constants import ADDRESS_ACTIVITY_TYPE

logger = logging.getLogger(__name__)


def extract_activity_addresses(chain: ChainName, payload: dict[str, Any]) -> list[str]:
    seen: dict[str, None] = {}
    for activity in (payload.get("event") or {}).get("activity") or []:
        for field in ("fromAddress", "toAddress"):
            address = activity.get(field)
            if address:
                seen[canonical_address(chain, address)] = None
    return list(seen)


class WebhookEventService:
    def __init__(self, management: WebhookManagementService, bus: EventBus) -> None:
        self._management = management
        self._bus = bus

    async def process(self, signature: str | None, raw_body: bytes) -> int:
        """Returns the number of address-activity events published."""
        if not self._management.webhook_url:
            raise WebhookNotConfiguredError("WEBHOOK_URL is empty")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            logger.warning("Rejecting webhook with non-JSON body")
            raise InvalidWebhookPayloadError("body is not JSON") from None
        if not isinstance(payload, dict):
            raise InvalidWebhookPayloadError("body is not a JSON object")

        network = (payload.get("event") or {}).get("network")
        chain = ALCHEMY_NETWORK_TO_CHAIN.get(network or "")
        if chain is None:
            logger.warning("Webhook for unknown network: %s", network)
            raise InvalidWebhookPayloadError(f"unknown network {network}")

        if not await self._management.verify_signature(chain, signature, raw_body):
            raise InvalidWebhookSignatureError()

        event_type = payload.get("type")
        if event_type != ADDRESS_ACTIVITY_TYPE:
            logger.debug("Ignoring webhook event type: %s", event_type)
            return 0

        addresses = extract_activity_addresses(chain, payload)
        chain_id = CHAIN_IDS[chain]
        for address in addresses:
            await self._bus.publish(
                ADDRESS_ACTIVITY, AddressActivityEvent(chain.value, chain_id, address)
            )
        logger.info(
            "Webhook %s: %d addresses active on %s",
            payload.get("id"), len(addresses), chain.value,
        )
        return len(addresses)
