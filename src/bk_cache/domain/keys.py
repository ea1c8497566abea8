"""Cache key codec.

Format: prefix:chain[:chainId][:address][:provider][:extra...]

Prefix, chain and provider are lowercased; address and extra segments are
kept as supplied. When no chain id is given, encode() infers it from
CHAIN_IDS. decode() never re-infers: it only recovers what is textually
present, and a numeric third segment is always read as the chain id.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from src.bk_common.enums import CHAIN_IDS, ChainName, ProviderType, parse_provider
from src.bk_common.errors import ProviderNotSupportedError

logger = logging.getLogger(__name__)

DELIMITER = ":"


class CacheKeyPrefix(str, Enum):
    PORTFOLIO = "portfolio"
    TRANSACTION = "transaction"
    NFT = "nft"
    PRICE = "price"


@dataclass(frozen=True)
class CacheKey:
    prefix: str
    chain: str
    chain_id: int | None = None
    address: str | None = None
    provider: ProviderType | None = None
    extra: tuple[str, ...] = field(default_factory=tuple)


def _default_chain_id(chain: str) -> int | None:
    try:
        return CHAIN_IDS[ChainName(chain)]
    except ValueError:
        return None


def _segment(value: str | Enum) -> str:
    return str(value.value if isinstance(value, Enum) else value)


def encode(
    prefix: str | CacheKeyPrefix,
    chain: str | ChainName,
    chain_id: int | None = None,
    address: str | None = None,
    provider: str | ProviderType | None = None,
    extra: tuple[str, ...] | list[str] = (),
) -> str:
    """Build a key string. Raises ProviderNotSupportedError for unknown providers."""
    chain_part = _segment(chain).lower()
    parts = [_segment(prefix).lower(), chain_part]

    resolved_id = chain_id if chain_id is not None else _default_chain_id(chain_part)
    if resolved_id is not None:
        parts.append(str(resolved_id))

    if address:
        parts.append(address)

    if provider:
        known = parse_provider(_segment(provider))
        if known is None:
            raise ProviderNotSupportedError(_segment(provider))
        parts.append(known.value)

    parts.extend(extra)
    return DELIMITER.join(parts)


def encode_key(key: CacheKey) -> str:
    return encode(
        key.prefix, key.chain, key.chain_id, key.address, key.provider, key.extra
    )


def decode(key: str) -> CacheKey | None:
    """Parse a key string. Malformed input is logged and yields None."""
    parts = key.split(DELIMITER)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        logger.warning("Invalid cache key format: %s", key)
        return None

    prefix, chain = parts[0], parts[1]
    idx = 2

    chain_id: int | None = None
    if idx < len(parts) and _is_canonical_int(parts[idx]):
        chain_id = int(parts[idx])
        idx += 1

    address: str | None = None
    if idx < len(parts):
        address = parts[idx]
        idx += 1

    provider: ProviderType | None = None
    if idx < len(parts):
        provider = parse_provider(parts[idx])
        if provider is not None:
            idx += 1

    return CacheKey(
        prefix=prefix,
        chain=chain,
        chain_id=chain_id,
        address=address,
        provider=provider,
        extra=tuple(parts[idx:]),
    )


def _is_canonical_int(segment: str) -> bool:
    # "01", "+1" and "1_000" all parse but do not round-trip, so they stay text.
    try:
        return str(int(segment)) == segment
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Portfolio helpers
# ---------------------------------------------------------------------------


def create_portfolio_key(
    chain: str | ChainName,
    address: str,
    provider: str | ProviderType | None = None,
    chain_id: int | None = None,
) -> str:
    return encode(CacheKeyPrefix.PORTFOLIO, chain, chain_id, address, provider)


def address_key_base(chain: str | ChainName, chain_id: int, address: str) -> str:
    """Key of the provider-less portfolio entry; provider entries extend it."""
    return encode(CacheKeyPrefix.PORTFOLIO, chain, chain_id, address)


def address_pattern(chain: str | ChainName, chain_id: int, address: str) -> str:
    return f"{address_key_base(chain, chain_id, address)}{DELIMITER}*"


def provider_pattern(provider: ProviderType) -> str:
    return DELIMITER.join(["*", "*", "*", "*", provider.value])


def webhook_lock_key(chain: str | ChainName) -> str:
    return DELIMITER.join(["lock", "webhook", _segment(chain).lower()])
