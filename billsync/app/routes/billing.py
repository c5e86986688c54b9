"""API route receiving Stripe billing callbacks."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from ..billing import StripeWebhookHandler
from ..services.billing import get_webhook_handler

router = APIRouter(prefix="/api/callback", tags=["billing"])


@router.post("/stripe")
async def receive_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    handler: StripeWebhookHandler = Depends(get_webhook_handler),
) -> Response:
    # Signature is computed over the exact bytes; never parse before verifying.
    payload = await request.body()
    outcome = await run_in_threadpool(handler.handle, payload, stripe_signature)
    if outcome.is_json:
        return JSONResponse(status_code=outcome.status_code, content=outcome.body)
    return PlainTextResponse(status_code=outcome.status_code, content=str(outcome.body))
