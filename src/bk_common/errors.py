"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Chain / address
  2xxx: Provider
  3xxx: Balance
  4xxx: Cache
  5xxx: Webhook
  9xxx: System

`details` carries the internal cause (provider text, store error). The HTTP
layer only exposes it outside production.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        details: str | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details
        super().__init__(message)


# --- 1xxx: Chain / address ---

class ChainNotSupportedError(AppError):
    def __init__(self, chain: str) -> None:
        super().__init__(1001, f"Chain not supported: {chain}", 404)


class InvalidAddressError(AppError):
    def __init__(self, chain: str, address: str) -> None:
        super().__init__(1002, f"Invalid {chain} address: {address}", 400)


class ChainServiceNotFoundError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1003, f"Chain service not found: {detail}", 404)


# --- 2xxx: Provider ---

class ProviderNotSupportedError(AppError):
    def __init__(self, provider: str, chain: str | None = None) -> None:
        target = f" for chain {chain}" if chain else ""
        super().__init__(2001, f"Provider not supported{target}: {provider}", 404)


class ProviderRequestError(AppError):
    def __init__(self, provider: str, details: str | None = None) -> None:
        super().__init__(2002, f"Provider request failed: {provider}", 502, details)


# --- 3xxx: Balance ---

class BalanceFetchFailedError(AppError):
    def __init__(self, chain: str, address: str, details: str | None = None) -> None:
        super().__init__(
            3001, f"Failed to fetch balance for {chain}:{address}", 503, details
        )


class BalanceNotQueryableError(AppError):
    def __init__(self, chain: str) -> None:
        super().__init__(3002, f"Chain {chain} does not support balance queries", 501)


# --- 4xxx: Cache ---

class CacheReadFailure(AppError):
    """Raised inside the cache layer only; readers always see a miss instead."""

    def __init__(self, key: str, details: str | None = None) -> None:
        super().__init__(4001, f"Cache read failed: {key}", 500, details)


class CacheWriteFailure(AppError):
    def __init__(self, key: str, details: str | None = None) -> None:
        super().__init__(4002, f"Cache write failed: {key}", 500, details)


# --- 5xxx: Webhook ---

class InvalidWebhookSignatureError(AppError):
    def __init__(self) -> None:
        super().__init__(5001, "Invalid webhook signature", 401)


class WebhookNotConfiguredError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Webhook not configured: {detail}", 400)


class InvalidWebhookPayloadError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, f"Invalid webhook payload: {detail}", 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
