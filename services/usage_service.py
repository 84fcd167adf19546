"""
Usage Service - daily AI prompt quota
"""
import logging
from datetime import date, datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from crud.usage import PromptUsageRepository
from database_models import PromptUsage
from services.access_gate import AccessStatus, evaluate_access, daily_limit_for
from services.subscription_service import SubscriptionService
from backend.utils.errors import AuthorizationError, RateLimitError
from utils.shared_utils import utc_now, invalidate_cached, access_cache_key

logger = logging.getLogger(__name__)


class UsageService:
    """Tracks prompt usage against the plan's daily limit."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.usage_repo = PromptUsageRepository(db)
        self.subscription_service = SubscriptionService(db)

    async def today_usage(self, user_id: str, subscription, today: Optional[date] = None) -> PromptUsage:
        today = today or utc_now().date()
        return await self.usage_repo.get_or_create(user_id, today, daily_limit_for(subscription))

    async def status(self, user_id: str, now: Optional[datetime] = None) -> AccessStatus:
        """Gate decision for the user right now."""
        now = now or utc_now()
        subscription = await self.subscription_service.get_current(user_id, now)
        usage = None
        if subscription is not None:
            usage = await self.today_usage(user_id, subscription, now.date())
        return evaluate_access(subscription, usage, now)

    async def check(self, user_id: str, amount: int = 1, now: Optional[datetime] = None) -> AccessStatus:
        """
        Verify the user may spend amount prompts without spending them.

        Raises:
            AuthorizationError: no subscription or access has lapsed
            RateLimitError: daily limit reached
        """
        access = await self.status(user_id, now)
        if access.needs_trial_setup:
            raise AuthorizationError("No active subscription found", code="SUBSCRIPTION_REQUIRED")
        if not access.has_active_access:
            raise AuthorizationError("Subscription has expired", code="SUBSCRIPTION_EXPIRED")
        if access.remaining_quota is not None and access.remaining_quota < amount:
            raise RateLimitError("Daily prompt limit exceeded", details=access.to_dict())
        return access

    async def consume(self, user_id: str, amount: int = 1, now: Optional[datetime] = None) -> AccessStatus:
        """
        Spend amount prompts. The increment is a single conditional UPDATE,
        so concurrent requests cannot push the count past the limit.
        """
        now = now or utc_now()
        await self.check(user_id, amount, now)

        incremented = await self.usage_repo.try_increment(user_id, now.date(), amount)
        invalidate_cached(access_cache_key(user_id))
        if not incremented:
            logger.info(f"Prompt limit reached for user {user_id}")
            raise RateLimitError("Daily prompt limit exceeded")

        usage = await self.usage_repo.get_for_day(user_id, now.date())
        await self.db.refresh(usage)
        subscription = await self.subscription_service.get_current(user_id, now)
        return evaluate_access(subscription, usage, now)
