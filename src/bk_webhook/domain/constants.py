"""Webhook constants."""

# Subscriptions cannot be created empty; this seed address is registered at
# creation and is never removed by reconciliation.
DEFAULT_MONITORED_ADDRESS = "0x710a850ff60aa2f8e9e27ef1e7edef17a2e682d2"

ADDRESS_ACTIVITY_TYPE = "ADDRESS_ACTIVITY"

SIGNATURE_HEADERS = ("x-alchemy-signature", "x-webhook-signature")
