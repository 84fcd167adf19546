"""
Billing Router - Stripe checkout, billing portal and webhook endpoints
"""

import json
import logging
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from auth import get_current_user, load_user
from backend.utils.errors import ApiError
from backend.utils.responses import success_response
from config import settings
from database import get_db
from models.billing import CheckoutRequest
from services.billing_service import BillingService
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

payments_router = APIRouter(prefix="/api/payments", tags=["payments"])
webhook_router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def _ack(success: bool, **extra) -> JSONResponse:
    # Always 200 so Stripe does not retry
    return JSONResponse(status_code=200, content={"success": success, "received": True, **extra})


@webhook_router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Stripe webhook events with signature verification.
    Only verified events are processed. Always returns 200 OK to Stripe.
    """
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET environment variable is not set")
        return _ack(False, error="Webhook secret not configured")

    # Raw body is required for signature verification
    payload = await request.body()
    stripe_signature = request.headers.get("stripe-signature")
    if not stripe_signature:
        logger.error("Missing Stripe-Signature header")
        return _ack(False, error="Missing signature header")

    try:
        stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
        event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Stripe webhook signature verification failed: {e}")
        return _ack(False, error="Invalid webhook signature")
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        return _ack(False, error="Invalid payload format")

    try:
        result = await BillingService(db).process_webhook(event)
    except ApiError as e:
        # Processing failed; roll back this event's writes but still acknowledge
        await db.rollback()
        logger.error(f"Webhook {event.get('type')} could not be applied: {e.message}")
        return _ack(False, event_type=event.get("type"), error=e.message)
    except Exception as e:
        await db.rollback()
        logger.error(f"Webhook error: {e}", exc_info=True)
        return _ack(False, event_type=event.get("type"), error="Webhook processing failed")

    log_endpoint_event("/subscriptions/webhook", None, result["result"], {"event_type": result["event_type"]})
    return _ack(True, **result)


@payments_router.post("/checkout")
async def create_checkout_session(
    request: CheckoutRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a Stripe Checkout session for the weekly or monthly plan"""
    user = await load_user(db, current_user)
    data = await BillingService(db).create_checkout_session(user, request.plan_type)
    return success_response(data, message="Checkout session created")


@payments_router.post("/billing-portal")
async def create_billing_portal_session(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await load_user(db, current_user)
    data = await BillingService(db).create_billing_portal_session(user)
    return success_response(data)
