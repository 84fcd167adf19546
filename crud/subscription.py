"""
Repositories for subscription plans and user subscriptions
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from config import PLANS, LIVE_STATUSES
from database_models import SubscriptionPlan, UserSubscription

PLAN_COLUMNS = ("name", "price_cents", "interval", "trial_days", "daily_prompt_limit", "stripe_price_id", "features")


class SubscriptionPlanRepository:
    """Plan rows mirror the PLANS catalogue in config."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_key(self, plan_key: str) -> Optional[SubscriptionPlan]:
        result = await self.db.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.plan_key == plan_key)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, plan_key: str) -> SubscriptionPlan:
        """Return the plan row for plan_key, creating it from the catalogue on first use."""
        plan = await self.get_by_key(plan_key)
        if plan is not None:
            return plan

        if plan_key not in PLANS:
            raise KeyError(f"Unknown plan '{plan_key}'")
        catalogue = PLANS[plan_key]
        plan = SubscriptionPlan(plan_key=plan_key, **{column: catalogue[column] for column in PLAN_COLUMNS})
        self.db.add(plan)
        await self.db.flush()
        await self.db.refresh(plan)
        return plan

    async def seed_catalogue(self) -> list[SubscriptionPlan]:
        return [await self.get_or_create(plan_key) for plan_key in PLANS]


class SubscriptionRepository:
    """
    Repository for UserSubscription rows.
    A user has at most one live (trial, active, past_due) subscription.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_current(self, user_id: str) -> Optional[UserSubscription]:
        """
        The subscription that drives access: the live row if there is one,
        otherwise the most recently updated row.
        """
        result = await self.db.execute(
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .order_by(UserSubscription.updated_at.desc(), UserSubscription.created_at.desc())
        )
        rows = list(result.scalars().unique().all())
        for row in rows:
            if row.status in LIVE_STATUSES:
                return row
        return rows[0] if rows else None

    async def get_live(self, user_id: str) -> Optional[UserSubscription]:
        result = await self.db.execute(
            select(UserSubscription).where(
                UserSubscription.user_id == user_id,
                UserSubscription.status.in_(LIVE_STATUSES),
            )
        )
        return result.scalars().unique().first()

    async def has_any(self, user_id: str) -> bool:
        result = await self.db.execute(
            select(UserSubscription.id).where(UserSubscription.user_id == user_id).limit(1)
        )
        return result.first() is not None

    async def has_had_trial(self, user_id: str) -> bool:
        result = await self.db.execute(
            select(UserSubscription.id).where(
                UserSubscription.user_id == user_id,
                UserSubscription.trial_start_date.is_not(None),
            ).limit(1)
        )
        return result.first() is not None

    async def get_by_stripe_subscription(self, stripe_subscription_id: str) -> Optional[UserSubscription]:
        result = await self.db.execute(
            select(UserSubscription).where(UserSubscription.stripe_subscription_id == stripe_subscription_id)
        )
        return result.scalars().unique().one_or_none()

    async def create(self, user_id: str, data: dict) -> UserSubscription:
        subscription = UserSubscription(user_id=user_id, **data)
        self.db.add(subscription)
        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription

    async def update(self, subscription: UserSubscription, updates: dict) -> UserSubscription:
        for key, value in updates.items():
            if hasattr(subscription, key):
                setattr(subscription, key, value)
        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription

    async def list_for_user(self, user_id: str) -> list[UserSubscription]:
        result = await self.db.execute(
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .order_by(UserSubscription.created_at.desc())
        )
        return list(result.scalars().unique().all())
