# studygram/api/billing.py
"""
Stripe billing endpoints: checkout, customer portal and webhook.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from studygram.api.dependencies import get_billing_service
from studygram.api.schemas import CheckoutSessionRequest, PortalSessionRequest
from studygram.services.billing_service import BillingService, WebhookSignatureInvalid

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/checkout-session")
async def create_checkout_session(
    body: CheckoutSessionRequest, service: BillingService = Depends(get_billing_service)
) -> Dict[str, Any]:
    return await service.create_checkout_session(body.price_id, body.user_id)


@router.post("/portal-session")
async def create_portal_session(
    body: PortalSessionRequest, service: BillingService = Depends(get_billing_service)
) -> Dict[str, Any]:
    return await service.create_portal_session(body.customer_id, body.return_url)


@router.post("/webhook")
async def stripe_webhook(
    request: Request, service: BillingService = Depends(get_billing_service)
):
    """Stripe needs the raw body for signature verification."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        return await service.process_webhook(payload, signature)
    except WebhookSignatureInvalid:
        return PlainTextResponse("Webhook signature verification failed", status_code=400)
