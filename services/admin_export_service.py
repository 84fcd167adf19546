"""
Admin export of users with their subscription and usage summary
"""
import csv
import io
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from config import (
    PLANS, PLAN_WEEKLY, PLAN_MONTHLY, settings,
    STATUS_TRIAL, STATUS_ACTIVE, STATUS_CANCELED, STATUS_EXPIRED, STATUS_PAST_DUE,
)
from crud.practice import PracticeSessionRepository
from crud.subscription import SubscriptionRepository
from crud.usage import PromptUsageRepository
from crud.user import UserRepository
from utils.shared_utils import utc_now

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    ("id", "User ID"),
    ("email", "Email"),
    ("full_name", "Full Name"),
    ("subscription_status", "Subscription Status"),
    ("plan_type", "Plan Type"),
    ("subscription_started", "Subscription Started"),
    ("trial_end_date", "Trial End Date"),
    ("current_period_end", "Current Period End"),
    ("total_sessions", "Total Sessions"),
    ("questions_today", "Questions Today"),
    ("daily_limit", "Daily Limit"),
    ("created_at", "Sign Up Date"),
    ("last_login", "Last Login"),
    ("payment_status", "Payment Status"),
    ("stripe_customer_id", "Customer ID"),
]

EXPORT_HEADERS = [label for _, label in EXPORT_COLUMNS]


def _fmt(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _paid_plan_label(plan_key: Optional[str]) -> str:
    plan = PLANS.get(plan_key)
    if plan_key == PLAN_WEEKLY:
        return f"Weekly (${plan['price_cents'] / 100:g}/week)"
    if plan_key == PLAN_MONTHLY:
        return f"Monthly (${plan['price_cents'] / 100:g}/month)"
    return "Unknown"


def subscription_labels(subscription, now: datetime) -> tuple[str, str, str]:
    """(subscription status, plan type, payment status) as shown in the export."""
    if subscription is None:
        return "No Subscription", "None", "N/A"

    status = subscription.status
    if status == STATUS_TRIAL:
        if subscription.trial_end_date and subscription.trial_end_date > now:
            return "Active Trial", "Free Trial", "N/A"
        return "Trial Expired", "Free Trial (Expired)", "N/A"
    if status == STATUS_ACTIVE:
        return "Active Subscription", _paid_plan_label(subscription.plan_key), "Active"
    if status == STATUS_CANCELED:
        return "Cancelled", "Cancelled", "Cancelled"
    if status == STATUS_PAST_DUE:
        return "Past Due", _paid_plan_label(subscription.plan_key), "Past Due"
    if status == STATUS_EXPIRED:
        if subscription.plan_key in PLANS and subscription.plan_key not in (PLAN_WEEKLY, PLAN_MONTHLY):
            return "Trial Expired", "Free Trial (Expired)", "N/A"
        return "Expired", _paid_plan_label(subscription.plan_key), "Expired"
    return "No Subscription", "None", "N/A"


class AdminExportService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.usage_repo = PromptUsageRepository(db)
        self.session_repo = PracticeSessionRepository(db)

    async def rows(self, now: Optional[datetime] = None) -> list[dict]:
        now = now or utc_now()
        users = await self.user_repo.list_users()
        session_counts = await self.session_repo.count_all_by_user()

        rows = []
        for user in users:
            subscription = await self.subscription_repo.get_current(user.id)
            usage = await self.usage_repo.get_for_day(user.id, now.date())
            status_label, plan_label, payment_label = subscription_labels(subscription, now)
            started = None
            if subscription is not None:
                started = subscription.trial_start_date or subscription.current_period_start

            rows.append({
                "id": user.id,
                "email": user.email,
                "full_name": user.full_name or "Not Provided",
                "subscription_status": status_label,
                "plan_type": plan_label,
                "subscription_started": _fmt(started),
                "trial_end_date": _fmt(subscription.trial_end_date if subscription else None),
                "current_period_end": _fmt(subscription.current_period_end if subscription else None),
                "total_sessions": session_counts.get(user.id, 0),
                "questions_today": usage.prompt_count if usage else 0,
                "daily_limit": (usage.prompt_limit if usage else None) or settings.daily_prompt_limit,
                "created_at": _fmt(user.created_at),
                "last_login": _fmt(user.last_login_at or user.created_at),
                "payment_status": payment_label,
                "stripe_customer_id": (subscription.stripe_customer_id if subscription else None)
                or user.stripe_customer_id or "",
            })
        logger.info(f"Prepared admin export of {len(rows)} users")
        return rows

    @staticmethod
    def to_csv(rows: list[dict]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_HEADERS)
        for row in rows:
            writer.writerow([row[key] for key, _ in EXPORT_COLUMNS])
        return buffer.getvalue()
