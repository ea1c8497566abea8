"""bk_balances REST endpoints.

GET    /chains                               — registered chains
GET    /balances/{chain}/{address}           — tiered read, live fetch on miss
DELETE /balances/{chain}/{address}/cache     — drop both cache tiers
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_balances.application.service import BalanceService
from src.bk_common.database import get_db_session
from src.bk_common.response import ApiResponse, success_response

router = APIRouter(tags=["balances"])


def get_balance_service(request: Request) -> BalanceService:
    return request.app.state.balances


@router.get("/chains")
async def list_chains(
    request: Request,
    service: Annotated[BalanceService, Depends(get_balance_service)],
) -> ApiResponse:
    resp = success_response([c.model_dump() for c in service.list_chains()])
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/balances/{chain}/{address}")
async def get_balances(
    chain: str,
    address: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BalanceService, Depends(get_balance_service)],
    provider: str | None = Query(None, description="alchemy | rpc; default per chain"),
) -> ApiResponse:
    result = await service.get_portfolio(db, chain, address, provider)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.delete("/balances/{chain}/{address}/cache")
async def invalidate_balances(
    chain: str,
    address: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[BalanceService, Depends(get_balance_service)],
) -> ApiResponse:
    result = await service.invalidate(db, chain, address)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
