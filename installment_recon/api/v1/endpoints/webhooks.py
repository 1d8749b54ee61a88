from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from installment_recon.core.database import get_db
from installment_recon.core.exceptions import VerificationError
from installment_recon.core.logging import get_logger
from installment_recon.services.gateway_client import TapGatewayClient
from installment_recon.services.webhook_service import PaymentWebhookMatcher

logger = get_logger(__name__)

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def get_gateway_client() -> TapGatewayClient:
    return TapGatewayClient()


@router.options("/tap")
async def tap_webhook_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.post("/tap")
async def tap_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: TapGatewayClient = Depends(get_gateway_client)
):
    """Verify a Tap event and log its reconciliation match"""
    try:
        payload = await request.json()
    except ValueError:
        logger.error("Tap webhook body is not valid JSON")
        return JSONResponse({"error": "Invalid JSON body"}, status_code=500, headers=CORS_HEADERS)
    
    matcher = PaymentWebhookMatcher(db=db, gateway=gateway)
    try:
        outcome = await run_in_threadpool(matcher.handle, payload)
    except VerificationError as exc:
        # 500 makes Tap redeliver the event later
        logger.error(f"Tap webhook verification failed: {exc.message}")
        return JSONResponse({"error": exc.message}, status_code=500, headers=CORS_HEADERS)
    
    return JSONResponse(
        {"success": True, "status": outcome.payment.status},
        status_code=200,
        headers=CORS_HEADERS
    )
