"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.bk_balances.api.router import router as balances_router
from src.bk_balances.application.service import BalanceService
from src.bk_cache.application.fast_cache import FastCache
from src.bk_chains.application.registry import (
    ChainServiceRegistry,
    register_builtin_services,
)
from src.bk_common.database import async_session_factory, engine
from src.bk_common.errors import AppError, InternalError
from src.bk_common.redis_client import close_redis, get_redis
from src.bk_common.response import error_response
from src.bk_events.bus import EventBus
from src.bk_gateway.middleware.request_log import RequestLogMiddleware
from src.bk_portfolio.application.listeners import register_portfolio_listeners
from src.bk_portfolio.application.service import TieredPortfolioService
from src.bk_providers.application.factory import ProviderFactory
from src.bk_webhook.api.router import router as webhook_router
from src.bk_webhook.application.management import WebhookManagementService
from src.bk_webhook.application.reconciliation import WebhookReconciliationService
from src.bk_webhook.application.service import WebhookEventService
from src.bk_webhook.infrastructure.notify_client import AlchemyNotifyClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, wire services and listeners. Shutdown: drain and dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    cache = FastCache(get_redis())
    bus = EventBus()
    providers = ProviderFactory()
    registry = register_builtin_services(ChainServiceRegistry(providers))
    portfolio = TieredPortfolioService(cache, bus)

    notify_client = AlchemyNotifyClient()
    management = WebhookManagementService(notify_client, cache)
    reconciliation = WebhookReconciliationService(management, async_session_factory)
    register_portfolio_listeners(
        bus, cache, portfolio, async_session_factory,
        reconcile=reconciliation.reconcile_chain if settings.WEBHOOK_URL else None,
    )

    app.state.cache = cache
    app.state.bus = bus
    app.state.registry = registry
    app.state.portfolio = portfolio
    app.state.webhook_management = management
    app.state.webhook_events = WebhookEventService(management, bus)
    app.state.balances = BalanceService(registry, portfolio)

    sweep_task: asyncio.Task[None] | None = None
    if settings.RECONCILE_SWEEP_ENABLED and settings.WEBHOOK_URL and notify_client.configured:
        sweep_task = asyncio.create_task(reconciliation.run_periodic())

    yield

    # Shutdown
    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
    await bus.drain()
    await cache.close()
    await notify_client.close()
    await providers.close()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    details = None if settings.is_production else exc.details
    resp = error_response(exc.code, exc.message, details)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    resp = error_response(err.code, err.message, None if settings.is_production else str(exc))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=err.http_status, content=resp.model_dump())


app.include_router(balances_router, prefix="/api/v1")
app.include_router(webhook_router, prefix="/api/v1")


@app.get("/health")
async def health(request: Request) -> dict[str, str]:
    cache: FastCache | None = getattr(request.app.state, "cache", None)
    cache_status = "ok" if cache is not None and await cache.is_connected() else "degraded"
    return {"status": "ok", "cache": cache_status, "version": "0.1.0"}
