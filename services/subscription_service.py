"""
Subscription Service for trials and the subscription status lifecycle
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from config import (
    settings, PLAN_TRIAL, LIVE_STATUSES,
    STATUS_TRIAL, STATUS_ACTIVE, STATUS_CANCELED, STATUS_EXPIRED, STATUS_PAST_DUE,
)
from crud.subscription import SubscriptionRepository, SubscriptionPlanRepository
from database_models import User, UserSubscription
from backend.utils.errors import ConflictError, NotFoundError
from utils.shared_utils import utc_now, invalidate_user_cache

logger = logging.getLogger(__name__)

# Allowed status transitions
TRANSITIONS = {
    STATUS_TRIAL: {STATUS_ACTIVE, STATUS_EXPIRED, STATUS_CANCELED, STATUS_PAST_DUE},
    STATUS_ACTIVE: {STATUS_CANCELED, STATUS_PAST_DUE, STATUS_EXPIRED},
    STATUS_PAST_DUE: {STATUS_ACTIVE, STATUS_CANCELED, STATUS_EXPIRED},
    STATUS_CANCELED: {STATUS_EXPIRED, STATUS_ACTIVE},
    STATUS_EXPIRED: {STATUS_ACTIVE, STATUS_TRIAL},
}


class InvalidStatusTransition(ConflictError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move subscription from '{current}' to '{target}'", code="INVALID_TRANSITION")


def can_transition(current: str, target: str) -> bool:
    return current == target or target in TRANSITIONS.get(current, set())


class SubscriptionService:
    """
    Service for managing user trials and subscription statuses.
    """

    def __init__(self, db: AsyncSession, subscription_repo: Optional[SubscriptionRepository] = None):
        """
        Args:
            db: AsyncSession instance for database operations
            subscription_repo: SubscriptionRepository, created from db when omitted
        """
        self.db = db
        self.subscription_repo = subscription_repo or SubscriptionRepository(db)
        self.plan_repo = SubscriptionPlanRepository(db)

    async def start_trial(self, user: User, now: Optional[datetime] = None) -> UserSubscription:
        """
        Start a trial for a user who has never had a subscription.

        Raises:
            ConflictError: if the user already has a subscription row
        """
        now = now or utc_now()
        if await self.subscription_repo.has_any(user.id):
            raise ConflictError("User already has a subscription")

        plan = await self.plan_repo.get_or_create(PLAN_TRIAL)
        subscription = await self.subscription_repo.create(user.id, {
            "plan_id": plan.id,
            "plan_key": PLAN_TRIAL,
            "status": STATUS_TRIAL,
            "trial_start_date": now,
            "trial_end_date": now + timedelta(days=settings.trial_days),
            "stripe_customer_id": user.stripe_customer_id,
        })
        invalidate_user_cache(user.id)
        logger.info(f"Started {settings.trial_days}-day trial for user {user.id}")
        return subscription

    async def get_current(self, user_id: str, now: Optional[datetime] = None) -> Optional[UserSubscription]:
        """Current subscription with time-based expiry applied."""
        subscription = await self.subscription_repo.get_current(user_id)
        if subscription is not None:
            subscription = await self.apply_expiry(subscription, now or utc_now())
        return subscription

    async def apply_expiry(self, subscription: UserSubscription, now: datetime) -> UserSubscription:
        """
        trial -> expired once trial_end_date passes,
        canceled -> expired once current_period_end passes.
        """
        if subscription.status == STATUS_TRIAL and subscription.trial_end_date and now >= subscription.trial_end_date:
            return await self.transition(subscription, STATUS_EXPIRED)
        if (
            subscription.status == STATUS_CANCELED
            and subscription.current_period_end
            and now >= subscription.current_period_end
        ):
            return await self.transition(subscription, STATUS_EXPIRED)
        return subscription

    async def transition(self, subscription: UserSubscription, target: str, updates: Optional[dict] = None) -> UserSubscription:
        """
        Move a subscription to target status.

        Raises:
            InvalidStatusTransition: when the lifecycle does not allow it
            ConflictError: when another live subscription exists for the user
        """
        current = subscription.status
        if not can_transition(current, target):
            raise InvalidStatusTransition(current, target)

        if target in LIVE_STATUSES and current not in LIVE_STATUSES:
            live = await self.subscription_repo.get_live(subscription.user_id)
            if live is not None and live.id != subscription.id:
                raise ConflictError("User already has a live subscription")

        changes = dict(updates or {})
        changes["status"] = target
        subscription = await self.subscription_repo.update(subscription, changes)
        invalidate_user_cache(subscription.user_id)
        if current != target:
            logger.info(f"Subscription {subscription.id} for user {subscription.user_id}: {current} -> {target}")
        return subscription

    async def cancel(self, user_id: str, now: Optional[datetime] = None) -> UserSubscription:
        """
        User-initiated cancellation. Paid access continues until current_period_end;
        a trial ends immediately.
        """
        now = now or utc_now()
        subscription = await self.get_current(user_id, now)
        if subscription is None:
            raise NotFoundError("Subscription")

        if subscription.status == STATUS_CANCELED:
            raise ConflictError("Subscription is already canceled")

        if subscription.status == STATUS_TRIAL:
            return await self.transition(subscription, STATUS_CANCELED, {
                "cancel_at_period_end": False,
                "current_period_end": now,
            })

        return await self.transition(subscription, STATUS_CANCELED, {"cancel_at_period_end": True})

    async def upsert_from_billing(self, user: User, data: dict) -> UserSubscription:
        """
        Create or update the user's subscription from billing provider data.
        data carries status plus any of the period/plan/stripe columns.
        """
        target = data["status"]
        subscription = None
        if data.get("stripe_subscription_id"):
            subscription = await self.subscription_repo.get_by_stripe_subscription(data["stripe_subscription_id"])
        if subscription is None:
            subscription = await self.subscription_repo.get_current(user.id)

        updates = {key: value for key, value in data.items() if key != "status" and value is not None}
        if "plan_key" in updates and "plan_id" not in updates:
            plan = await self.plan_repo.get_or_create(updates["plan_key"])
            updates["plan_id"] = plan.id

        if subscription is None:
            if target in LIVE_STATUSES and await self.subscription_repo.get_live(user.id):
                raise ConflictError("User already has a live subscription")
            subscription = await self.subscription_repo.create(user.id, {"status": target, **updates})
            invalidate_user_cache(user.id)
            return subscription

        if not can_transition(subscription.status, target):
            # The billing provider is authoritative; record it but keep an audit trail
            logger.warning(
                f"Billing provider moved subscription {subscription.id} "
                f"from '{subscription.status}' to '{target}' outside the normal lifecycle"
            )
            subscription = await self.subscription_repo.update(subscription, {"status": target, **updates})
            invalidate_user_cache(user.id)
            return subscription

        return await self.transition(subscription, target, updates)

    async def set_status_by_stripe_id(self, stripe_subscription_id: str, target: str) -> Optional[UserSubscription]:
        subscription = await self.subscription_repo.get_by_stripe_subscription(stripe_subscription_id)
        if subscription is None:
            logger.warning(f"No local subscription for Stripe subscription {stripe_subscription_id}")
            return None
        if not can_transition(subscription.status, target):
            logger.warning(f"Ignoring Stripe status change {subscription.status} -> {target} for {subscription.id}")
            return subscription
        return await self.transition(subscription, target)
