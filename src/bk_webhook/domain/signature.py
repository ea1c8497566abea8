"""Inbound webhook signature check (HMAC-SHA256 over the raw body)."""

import hashlib
import hmac
import re

_PREFIX_RE = re.compile(r"^(sha256=|0x)", re.IGNORECASE)
_HEX_DIGEST_RE = re.compile(r"[0-9a-f]{64}")


def validate_alchemy_signature(
    signature_header: str | None, raw_body: bytes, signing_key: str | None
) -> bool:
    """Accepts `sha256=<hex>`, `0x<hex>` or bare hex.

    The body must be the exact bytes received; re-serialized JSON will not
    match. Comparison is constant time.
    """
    if not signature_header or not signing_key or not raw_body:
        return False

    remote = _PREFIX_RE.sub("", signature_header.strip()).strip().lower()
    if not _HEX_DIGEST_RE.fullmatch(remote):
        return False

    local = hmac.new(signing_key.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(remote.encode(), local.encode())
