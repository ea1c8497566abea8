"""bk_webhook REST endpoints.

POST /webhook/alchemy    — inbound Alchemy Notify callback (raw body signed)
"""

from fastapi import APIRouter, Request

from src.bk_common.response import ApiResponse, success_response
from src.bk_webhook.domain.constants import SIGNATURE_HEADERS

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/alchemy")
async def receive_alchemy_webhook(request: Request) -> ApiResponse:
    signature = next(
        (request.headers[h] for h in SIGNATURE_HEADERS if h in request.headers), None
    )
    raw_body = await request.body()
    published = await request.app.state.webhook_events.process(signature, raw_body)
    resp = success_response({"addresses": published})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
