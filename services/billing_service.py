"""
Billing Service - Stripe checkout, billing portal and webhook processing
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Any
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from config import (
    settings, PLANS, PAID_PLANS,
    STATUS_TRIAL, STATUS_ACTIVE, STATUS_CANCELED, STATUS_EXPIRED, STATUS_PAST_DUE,
)
from crud.user import UserRepository
from crud.subscription import SubscriptionRepository
from database_models import User
from backend.utils.errors import BadRequestError, ConflictError, NotFoundError, ExternalServiceError
from services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

# Initialize Stripe client
if settings.stripe_secret_key:
    stripe.api_key = settings.stripe_secret_key
else:
    logger.warning("STRIPE_SECRET_KEY is not set. Stripe functionality will be unavailable.")

STRIPE_STATUS_MAP = {
    "trialing": STATUS_TRIAL,
    "active": STATUS_ACTIVE,
    "past_due": STATUS_PAST_DUE,
    "canceled": STATUS_CANCELED,
    "unpaid": STATUS_EXPIRED,
    "incomplete_expired": STATUS_EXPIRED,
}


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Key lookup that works for plain dicts and Stripe objects alike."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def plan_for_price(price_id: Optional[str]) -> Optional[str]:
    if not price_id:
        return None
    for plan_key in PAID_PLANS:
        if PLANS[plan_key]["stripe_price_id"] == price_id:
            return plan_key
    return None


def subscription_fields(stripe_sub: Any) -> dict:
    """Local subscription columns from a Stripe subscription object."""
    items = _get(_get(stripe_sub, "items"), "data", [])
    first_item = items[0] if items else None
    price_id = _get(_get(first_item, "price"), "id")
    period_start = _get(stripe_sub, "current_period_start") or _get(first_item, "current_period_start")
    period_end = _get(stripe_sub, "current_period_end") or _get(first_item, "current_period_end")

    fields = {
        "stripe_subscription_id": _get(stripe_sub, "id"),
        "stripe_customer_id": _get(stripe_sub, "customer"),
        "current_period_start": _from_timestamp(period_start),
        "current_period_end": _from_timestamp(period_end),
        "trial_start_date": _from_timestamp(_get(stripe_sub, "trial_start")),
        "trial_end_date": _from_timestamp(_get(stripe_sub, "trial_end")),
        "cancel_at_period_end": bool(_get(stripe_sub, "cancel_at_period_end", False)),
        "plan_key": _get(_get(stripe_sub, "metadata"), "plan_type") or plan_for_price(price_id),
    }
    return fields


class BillingService:
    """
    Service class for handling billing-related business logic.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db
        self.user_repo = UserRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.subscription_service = SubscriptionService(db, self.subscription_repo)

    @staticmethod
    def _require_stripe():
        if not settings.stripe_secret_key:
            logger.error("STRIPE_SECRET_KEY is not set. Cannot reach Stripe.")
            raise ExternalServiceError("Stripe", "Payment provider is not configured")

    async def _ensure_customer(self, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customers = await asyncio.to_thread(stripe.Customer.list, email=user.email, limit=1)
        if customers.data:
            customer_id = customers.data[0].id
        else:
            customer = await asyncio.to_thread(
                stripe.Customer.create,
                email=user.email,
                name=user.full_name,
                metadata={"user_id": user.id},
            )
            customer_id = customer.id
        await self.user_repo.update_user(user, {"stripe_customer_id": customer_id})
        return customer_id

    async def create_checkout_session(self, user: User, plan_type: str) -> dict:
        """
        Create a Stripe Checkout session for a paid plan.

        Raises:
            BadRequestError: unknown plan
            ConflictError: the user already pays for this plan
            ExternalServiceError: Stripe not configured or failing
        """
        if plan_type not in PAID_PLANS:
            raise BadRequestError(f"Invalid plan type: {plan_type}", details={"allowed": list(PAID_PLANS)})

        live = await self.subscription_repo.get_live(user.id)
        if live is not None and live.status == STATUS_ACTIVE and live.plan_key == plan_type:
            raise ConflictError(f"Already subscribed to the {plan_type} plan")

        self._require_stripe()
        price_id = PLANS[plan_type]["stripe_price_id"]
        if not price_id:
            logger.error(f"Stripe price id for plan '{plan_type}' is not configured")
            raise ExternalServiceError("Stripe", f"Price for plan '{plan_type}' is not configured")

        offer_trial = not await self.subscription_repo.has_had_trial(user.id)
        frontend_url = settings.frontend_url or "http://localhost:3000"
        metadata = {"user_id": user.id, "plan_type": plan_type, "trial": "true" if offer_trial else "false"}
        subscription_data = {"metadata": metadata}
        if offer_trial:
            subscription_data["trial_period_days"] = PLANS[plan_type]["trial_days"]

        try:
            customer_id = await self._ensure_customer(user)
            checkout_session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                customer=customer_id,
                client_reference_id=user.id,
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                subscription_data=subscription_data,
                success_url=f"{frontend_url}/dashboard?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{frontend_url}/pricing?payment=canceled",
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session for user {user.id}: {e}", exc_info=True)
            raise ExternalServiceError("Stripe", "Failed to create checkout session")

        logger.info(f"Created checkout session {checkout_session.id} for user {user.id} ({plan_type})")
        return {"session_id": checkout_session.id, "url": checkout_session.url, "plan_type": plan_type, "trial": offer_trial}

    async def create_billing_portal_session(self, user: User) -> dict:
        """
        Create a Stripe Billing Portal session.

        Raises:
            NotFoundError: the user has no Stripe customer yet
        """
        if not user.stripe_customer_id:
            raise NotFoundError("Billing account")
        self._require_stripe()

        frontend_url = settings.frontend_url or "http://localhost:3000"
        try:
            portal_session = await asyncio.to_thread(
                stripe.billing_portal.Session.create,
                customer=user.stripe_customer_id,
                return_url=f"{frontend_url}/dashboard",
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create billing portal session for user {user.id}: {e}", exc_info=True)
            raise ExternalServiceError("Stripe", "Failed to create billing portal session")
        return {"url": portal_session.url}

    async def _user_for(self, obj: Any) -> Optional[User]:
        metadata = _get(obj, "metadata", {})
        user_id = _get(obj, "client_reference_id") or _get(metadata, "user_id")
        if user_id:
            user = await self.user_repo.get_user_by_id(user_id)
            if user is not None:
                return user
        customer_id = _get(obj, "customer")
        if customer_id:
            return await self.user_repo.get_user_by_stripe_customer(customer_id)
        return None

    async def _retrieve_subscription(self, subscription_id: str) -> Optional[Any]:
        if not settings.stripe_secret_key:
            return None
        try:
            return await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
        except stripe.StripeError as e:
            logger.warning(f"Could not retrieve Stripe subscription {subscription_id}: {e}")
            return None

    async def _checkout_completed(self, session_obj: Any) -> str:
        user = await self._user_for(session_obj)
        if user is None:
            logger.warning(f"checkout.session.completed for unknown user (session {_get(session_obj, 'id')})")
            return "ignored"

        customer_id = _get(session_obj, "customer")
        if customer_id and user.stripe_customer_id != customer_id:
            await self.user_repo.update_user(user, {"stripe_customer_id": customer_id})

        metadata = _get(session_obj, "metadata", {})
        subscription_id = _get(session_obj, "subscription")
        data = {
            "stripe_subscription_id": subscription_id,
            "stripe_customer_id": customer_id,
            "plan_key": _get(metadata, "plan_type"),
        }
        stripe_sub = await self._retrieve_subscription(subscription_id) if subscription_id else None
        if stripe_sub is not None:
            data.update({k: v for k, v in subscription_fields(stripe_sub).items() if v is not None})
            data["status"] = STRIPE_STATUS_MAP.get(_get(stripe_sub, "status"), STATUS_ACTIVE)
        else:
            data["status"] = STATUS_TRIAL if _get(metadata, "trial") == "true" else STATUS_ACTIVE

        subscription = await self.subscription_service.upsert_from_billing(user, data)
        logger.info(f"Checkout completed for user {user.id}: subscription {subscription.id} is {subscription.status}")
        return "processed"

    async def _subscription_changed(self, stripe_sub: Any) -> str:
        status = STRIPE_STATUS_MAP.get(_get(stripe_sub, "status"))
        if status is None:
            logger.info(f"Ignoring Stripe subscription status '{_get(stripe_sub, 'status')}'")
            return "ignored"
        user = await self._user_for(stripe_sub)
        if user is None:
            logger.warning(f"Subscription event for unknown customer {_get(stripe_sub, 'customer')}")
            return "ignored"
        data = subscription_fields(stripe_sub)
        data["status"] = status
        await self.subscription_service.upsert_from_billing(user, data)
        return "processed"

    async def _set_status(self, stripe_subscription_id: Optional[str], status: str) -> str:
        if not stripe_subscription_id:
            return "ignored"
        subscription = await self.subscription_service.set_status_by_stripe_id(stripe_subscription_id, status)
        return "processed" if subscription is not None else "ignored"

    async def process_webhook(self, event: Any) -> dict:
        """
        Apply a verified Stripe event to local subscription state.

        Returns:
            {"event_type": str, "result": "processed" | "ignored"}
        """
        event_type = _get(event, "type")
        obj = _get(_get(event, "data"), "object", {})
        logger.info(f"Processing Stripe webhook event: {event_type}")

        if event_type == "checkout.session.completed":
            result = await self._checkout_completed(obj)
        elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
            result = await self._subscription_changed(obj)
        elif event_type == "customer.subscription.deleted":
            result = await self._set_status(_get(obj, "id"), STATUS_CANCELED)
        elif event_type == "customer.subscription.trial_will_end":
            logger.info(f"Trial ending soon for Stripe subscription {_get(obj, 'id')}")
            result = "processed"
        elif event_type == "invoice.payment_failed":
            result = await self._set_status(_get(obj, "subscription"), STATUS_PAST_DUE)
        elif event_type == "invoice.payment_succeeded":
            result = await self._set_status(_get(obj, "subscription"), STATUS_ACTIVE)
        else:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            result = "ignored"
        return {"event_type": event_type, "result": result}
