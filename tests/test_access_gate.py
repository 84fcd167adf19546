"""
Unit tests for the trial/subscription access gate
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

from config import PLANS, STATUS_TRIAL, STATUS_ACTIVE, STATUS_CANCELED, STATUS_EXPIRED, STATUS_PAST_DUE
from services.access_gate import (
    evaluate_access, has_active_access, days_remaining, remaining_quota, daily_limit_for,
)
from services.subscription_service import can_transition

NOW = datetime(2026, 3, 10, 12, 0, 0)


def make_subscription(status, plan_key="trial", trial_end=None, period_end=None, cancel_at_period_end=False):
    return SimpleNamespace(
        status=status,
        plan_key=plan_key,
        trial_end_date=trial_end,
        current_period_end=period_end,
        cancel_at_period_end=cancel_at_period_end,
    )


def make_usage(count, limit):
    return SimpleNamespace(prompt_count=count, prompt_limit=limit)


def test_trial_has_access_until_end():
    subscription = make_subscription(STATUS_TRIAL, trial_end=NOW + timedelta(days=3))
    assert has_active_access(subscription, NOW) is True
    assert has_active_access(subscription, NOW + timedelta(days=3)) is False


def test_canceled_keeps_access_until_period_end():
    """A canceled paid subscription stays usable for the rest of the paid period."""
    subscription = make_subscription(STATUS_CANCELED, plan_key="weekly", period_end=NOW + timedelta(hours=1))
    assert has_active_access(subscription, NOW) is True
    assert has_active_access(subscription, NOW + timedelta(hours=2)) is False


def test_past_due_and_expired_have_no_access():
    assert has_active_access(make_subscription(STATUS_PAST_DUE, period_end=NOW + timedelta(days=5)), NOW) is False
    assert has_active_access(make_subscription(STATUS_EXPIRED), NOW) is False
    assert has_active_access(None, NOW) is False


def test_days_remaining_rounds_up_and_never_negative():
    assert days_remaining(NOW + timedelta(days=6, hours=1), NOW) == 7
    assert days_remaining(NOW + timedelta(days=7), NOW) == 7
    assert days_remaining(NOW - timedelta(minutes=1), NOW) == 0
    assert days_remaining(None, NOW) is None


def test_remaining_quota():
    assert remaining_quota(20, 5) == 15
    assert remaining_quota(20, 25) == 0
    assert remaining_quota(None, 500) is None


def test_daily_limit_follows_plan():
    assert daily_limit_for(None) == PLANS["trial"]["daily_prompt_limit"]
    assert daily_limit_for(make_subscription(STATUS_ACTIVE, plan_key="weekly")) == 20
    assert daily_limit_for(make_subscription(STATUS_ACTIVE, plan_key="monthly")) is None
    # A Stripe trial on the monthly plan is still limited like a trial
    assert daily_limit_for(make_subscription(STATUS_TRIAL, plan_key="monthly")) == PLANS["trial"]["daily_prompt_limit"]


def test_evaluate_access_without_subscription_needs_trial_setup():
    access = evaluate_access(None, None, NOW)
    assert access.needs_trial_setup is True
    assert access.has_active_access is False
    assert access.can_make_prompt is False
    assert access.used_today == 0


def test_evaluate_access_blocks_prompts_at_limit():
    subscription = make_subscription(STATUS_TRIAL, trial_end=NOW + timedelta(days=2))
    access = evaluate_access(subscription, make_usage(20, 20), NOW)
    assert access.has_active_access is True
    assert access.remaining_quota == 0
    assert access.can_make_prompt is False
    assert access.days_remaining == 2


def test_evaluate_access_unlimited_plan():
    subscription = make_subscription(STATUS_ACTIVE, plan_key="monthly", period_end=NOW + timedelta(days=20))
    access = evaluate_access(subscription, make_usage(150, None), NOW)
    assert access.daily_limit is None
    assert access.remaining_quota is None
    assert access.can_make_prompt is True
    assert access.days_remaining is None


def test_access_status_serializes_dates():
    subscription = make_subscription(STATUS_TRIAL, trial_end=NOW + timedelta(days=1))
    data = evaluate_access(subscription, make_usage(1, 20), NOW).to_dict()
    assert data["trial_end_date"] == (NOW + timedelta(days=1)).isoformat()
    assert data["current_period_end"] is None
    assert data["status"] == STATUS_TRIAL


def test_status_lifecycle_transitions():
    assert can_transition(STATUS_TRIAL, STATUS_ACTIVE)
    assert can_transition(STATUS_TRIAL, STATUS_EXPIRED)
    assert can_transition(STATUS_ACTIVE, STATUS_PAST_DUE)
    assert can_transition(STATUS_PAST_DUE, STATUS_ACTIVE)
    assert can_transition(STATUS_EXPIRED, STATUS_ACTIVE)
    assert can_transition(STATUS_ACTIVE, STATUS_ACTIVE)
    assert not can_transition(STATUS_ACTIVE, STATUS_TRIAL)
    assert not can_transition(STATUS_CANCELED, STATUS_TRIAL)
