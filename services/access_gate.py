"""
Trial/subscription gate: decides whether a user currently has access and
what daily prompt quota applies. Pure functions over already-loaded rows.
"""
import math
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from config import (
    PLANS, PLAN_TRIAL, STATUS_TRIAL, STATUS_ACTIVE, STATUS_CANCELED,
)

SECONDS_PER_DAY = 86400


@dataclass
class AccessStatus:
    has_active_access: bool
    needs_trial_setup: bool
    status: Optional[str]
    plan_key: Optional[str]
    days_remaining: Optional[int]
    daily_limit: Optional[int]
    used_today: int
    remaining_quota: Optional[int]
    can_make_prompt: bool
    trial_end_date: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("trial_end_date", "current_period_end"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


def has_active_access(subscription, now: datetime) -> bool:
    """
    True while a trial has not ended or a paid period has not ended.
    A canceled subscription keeps access until its current period ends.
    """
    if subscription is None:
        return False

    status = subscription.status
    if status == STATUS_TRIAL:
        return subscription.trial_end_date is not None and now < subscription.trial_end_date
    if status in (STATUS_ACTIVE, STATUS_CANCELED):
        return subscription.current_period_end is not None and now < subscription.current_period_end
    return False


def days_remaining(end: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole days left until end, rounded up and never negative."""
    if end is None:
        return None
    seconds = (end - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / SECONDS_PER_DAY)


def remaining_quota(daily_limit: Optional[int], used_today: int) -> Optional[int]:
    if daily_limit is None:
        return None
    return max(0, daily_limit - used_today)


def daily_limit_for(subscription) -> Optional[int]:
    """Prompt limit for the subscription's plan. None means unlimited."""
    if subscription is None:
        return PLANS[PLAN_TRIAL]["daily_prompt_limit"]
    if subscription.status == STATUS_TRIAL:
        return PLANS[PLAN_TRIAL]["daily_prompt_limit"]
    plan = PLANS.get(subscription.plan_key or PLAN_TRIAL, PLANS[PLAN_TRIAL])
    return plan["daily_prompt_limit"]


def evaluate_access(subscription, usage, now: datetime, daily_limit: Optional[int] = None) -> AccessStatus:
    """
    Combine the subscription row (may be None) and today's usage row (may be None)
    into the gate decision.
    """
    if daily_limit is None and usage is not None and usage.prompt_limit is not None:
        daily_limit = usage.prompt_limit
    elif daily_limit is None:
        daily_limit = daily_limit_for(subscription)

    used_today = usage.prompt_count if usage is not None else 0

    if subscription is None:
        return AccessStatus(
            has_active_access=False,
            needs_trial_setup=True,
            status=None,
            plan_key=None,
            days_remaining=None,
            daily_limit=daily_limit,
            used_today=used_today,
            remaining_quota=remaining_quota(daily_limit, used_today),
            can_make_prompt=False,
        )

    access = has_active_access(subscription, now)
    quota = remaining_quota(daily_limit, used_today)
    trial_days = days_remaining(subscription.trial_end_date, now) if subscription.status == STATUS_TRIAL else None

    return AccessStatus(
        has_active_access=access,
        needs_trial_setup=False,
        status=subscription.status,
        plan_key=subscription.plan_key,
        days_remaining=trial_days,
        daily_limit=daily_limit,
        used_today=used_today,
        remaining_quota=quota,
        can_make_prompt=access and (quota is None or quota > 0),
        trial_end_date=subscription.trial_end_date,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=bool(subscription.cancel_at_period_end),
    )
