"""Pure set computation for webhook address reconciliation."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from src.bk_portfolio.domain.models import MonitoredAddress
from src.bk_webhook.domain.constants import DEFAULT_MONITORED_ADDRESS


@dataclass
class AddressChanges:
    to_add: list[str] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.to_add and not self.to_remove


def compute_address_changes(
    rows: Iterable[MonitoredAddress], now: datetime
) -> AddressChanges:
    """Active-but-unmonitored rows are added, expired-but-monitored removed.

    An address live under any provider is never removed, even if another of
    its snapshots expired.
    """
    add: dict[str, None] = {}
    remove: dict[str, None] = {}
    live_addresses: set[str] = set()
    for row in rows:
        live = row.expires_at > now
        if live:
            live_addresses.add(row.address)
        if live and row.webhook_monitored is not True:
            add[row.address] = None
        elif not live and row.webhook_monitored is True:
            remove[row.address] = None
    for address in live_addresses:
        remove.pop(address, None)
    return AddressChanges(to_add=list(add), to_remove=list(remove))


def stale_subscriptions(
    subscribed: Iterable[str], live_addresses: set[str]
) -> list[str]:
    """Subscribed addresses with no live snapshot, excluding the seed address."""
    live = {address.lower() for address in live_addresses}
    seed = DEFAULT_MONITORED_ADDRESS.lower()
    return [
        address
        for address in subscribed
        if address.lower() != seed and address.lower() not in live
    ]
