"""
Subscriptions Router - gate status, plan catalogue, trial start and cancellation
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, load_user
from backend.utils.responses import success_response
from config import PLANS
from database import get_db
from database_models import UserSubscription
from services.subscription_service import SubscriptionService
from services.usage_service import UsageService
from utils.shared_utils import get_cached, access_cache_key, log_endpoint_event

logger = logging.getLogger(__name__)

subscriptions_router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def subscription_to_dict(subscription: UserSubscription) -> dict:
    return {
        "id": subscription.id,
        "plan_key": subscription.plan_key,
        "status": subscription.status,
        "trial_start_date": subscription.trial_start_date,
        "trial_end_date": subscription.trial_end_date,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "cancel_at_period_end": subscription.cancel_at_period_end,
    }


@subscriptions_router.get("/status")
async def get_status(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Access flag, remaining quota and trial days for the current user"""
    user_id = current_user["user_id"]

    async def evaluate():
        access = await UsageService(db).status(user_id)
        return access.to_dict()

    # Short TTL: writers invalidate, the TTL only bounds staleness across instances
    data = await get_cached(access_cache_key(user_id), evaluate, ttl_seconds=30)
    return success_response(data)


@subscriptions_router.get("/plans")
async def get_plans():
    plans = [
        {key: value for key, value in plan.items() if key != "stripe_price_id"}
        for plan in PLANS.values()
    ]
    return success_response({"plans": plans})


@subscriptions_router.post("/trial")
async def start_trial(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    user = await load_user(db, current_user)
    subscription = await SubscriptionService(db).start_trial(user)
    log_endpoint_event("/subscriptions/trial", None, "success", {"user_id": user.id})
    return success_response({"subscription": subscription_to_dict(subscription)}, message="Trial started", status=201)


@subscriptions_router.post("/cancel")
async def cancel_subscription(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Cancel; paid access continues until the end of the current period"""
    subscription = await SubscriptionService(db).cancel(current_user["user_id"])
    log_endpoint_event("/subscriptions/cancel", None, "success", {"user_id": current_user["user_id"]})
    return success_response({"subscription": subscription_to_dict(subscription)}, message="Subscription canceled")
