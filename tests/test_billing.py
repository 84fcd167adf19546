"""
Tests for Stripe checkout and webhook processing.
Stripe is never contacted: signature checks and API calls are patched.
"""
import json
import time
from unittest.mock import patch, MagicMock

import pytest
import stripe

from config import settings
from tests.conftest import signup

WEBHOOK_URL = "/api/subscriptions/webhook"


def stripe_subscription(user_id, status="active", plan_type="weekly", sub_id="sub_123", customer="cus_123"):
    now = int(time.time())
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "current_period_start": now,
        "current_period_end": now + 7 * 86400,
        "cancel_at_period_end": False,
        "metadata": {"user_id": user_id, "plan_type": plan_type},
        "items": {"data": [{"price": {"id": "price_weekly_test"}}]},
    }


async def send_event(client, event_type, obj):
    payload = json.dumps({"id": "evt_test", "type": event_type, "data": {"object": obj}})
    with patch("stripe.Webhook.construct_event", return_value={"type": event_type}):
        response = await client.post(
            WEBHOOK_URL,
            content=payload,
            headers={"stripe-signature": "t=1,v1=test", "content-type": "application/json"},
        )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_webhook_requires_signature(client):
    response = await client.post(WEBHOOK_URL, content=b"{}")
    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client):
    error = stripe.SignatureVerificationError("No signatures found matching the expected signature", "t=1,v1=bad")
    with patch("stripe.Webhook.construct_event", side_effect=error):
        response = await client.post(WEBHOOK_URL, content=b"{}", headers={"stripe-signature": "t=1,v1=bad"})
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"] == "Invalid webhook signature"


@pytest.mark.asyncio
async def test_subscription_lifecycle_from_webhooks(client):
    """
    Test Stripe events driving the local subscription.

    This test verifies:
    - customer.subscription.updated moves the trial to an active paid plan
    - invoice.payment_failed moves it to past_due and removes access
    - invoice.payment_succeeded restores access
    - customer.subscription.deleted cancels it
    """
    account = await signup(client, "subscriber@example.com")
    user_id = account["data"]["user"]["id"]
    headers = account["headers"]

    body = await send_event(client, "customer.subscription.updated", stripe_subscription(user_id, plan_type="monthly"))
    assert body["success"] is True
    assert body["result"] == "processed"

    status = (await client.get("/api/subscriptions/status", headers=headers)).json()["data"]
    assert status["status"] == "active"
    assert status["plan_key"] == "monthly"
    assert status["has_active_access"] is True
    assert status["daily_limit"] is None
    assert status["remaining_quota"] is None

    body = await send_event(client, "invoice.payment_failed", {"id": "in_1", "subscription": "sub_123"})
    assert body["result"] == "processed"
    status = (await client.get("/api/subscriptions/status", headers=headers)).json()["data"]
    assert status["status"] == "past_due"
    assert status["has_active_access"] is False

    await send_event(client, "invoice.payment_succeeded", {"id": "in_2", "subscription": "sub_123"})
    status = (await client.get("/api/subscriptions/status", headers=headers)).json()["data"]
    assert status["status"] == "active"

    await send_event(client, "customer.subscription.deleted", {"id": "sub_123", "customer": "cus_123"})
    status = (await client.get("/api/subscriptions/status", headers=headers)).json()["data"]
    assert status["status"] == "canceled"


@pytest.mark.asyncio
async def test_checkout_completed_without_stripe_lookup(client):
    account = await signup(client, "checkout_done@example.com")
    user_id = account["data"]["user"]["id"]

    body = await send_event(client, "checkout.session.completed", {
        "id": "cs_1",
        "customer": "cus_999",
        "subscription": "sub_999",
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id, "plan_type": "weekly", "trial": "false"},
    })
    assert body["result"] == "processed"

    status = (await client.get("/api/subscriptions/status", headers=account["headers"])).json()["data"]
    assert status["status"] == "active"
    assert status["plan_key"] == "weekly"


@pytest.mark.asyncio
async def test_unknown_events_are_ignored(client):
    body = await send_event(client, "charge.refunded", {"id": "ch_1"})
    assert body["success"] is True
    assert body["result"] == "ignored"

    body = await send_event(client, "invoice.payment_failed", {"id": "in_3", "subscription": "sub_unknown"})
    assert body["result"] == "ignored"


@pytest.mark.asyncio
async def test_checkout_validation(client, auth_headers, monkeypatch):
    response = await client.post("/api/payments/checkout", json={"plan_type": "lifetime"}, headers=auth_headers)
    assert response.status_code == 400

    monkeypatch.setattr(settings, "stripe_secret_key", None)
    response = await client.post("/api/payments/checkout", json={"plan_type": "weekly"}, headers=auth_headers)
    assert response.status_code == 503
    assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"


@pytest.mark.asyncio
async def test_checkout_session_created(client, auth_headers, monkeypatch):
    """A user who already used the local trial is not offered a second trial at checkout."""
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    customers = MagicMock(data=[])
    checkout = MagicMock(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")

    with patch("stripe.Customer.list", return_value=customers), \
            patch("stripe.Customer.create", return_value=MagicMock(id="cus_new")) as create_customer, \
            patch("stripe.checkout.Session.create", return_value=checkout) as create_session:
        response = await client.post("/api/payments/checkout", json={"plan_type": "weekly"}, headers=auth_headers)

    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data == {"session_id": "cs_test_1", "url": checkout.url, "plan_type": "weekly", "trial": False}

    create_customer.assert_called_once()
    kwargs = create_session.call_args.kwargs
    assert kwargs["customer"] == "cus_new"
    assert kwargs["line_items"] == [{"price": "price_weekly_test", "quantity": 1}]
    assert "trial_period_days" not in kwargs["subscription_data"]
    assert kwargs["metadata"]["plan_type"] == "weekly"


@pytest.mark.asyncio
async def test_billing_portal_requires_customer(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    response = await client.post("/api/payments/billing-portal", headers=auth_headers)
    assert response.status_code == 404
