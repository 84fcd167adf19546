"""
Tests for the admin user export
"""
import csv
import io
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from services.admin_export_service import subscription_labels, EXPORT_HEADERS
from tests.conftest import signup

ADMIN_HEADERS = {"x-admin-token": "test-admin-token"}
NOW = datetime(2026, 3, 10, 12, 0, 0)


def test_subscription_labels():
    trial = SimpleNamespace(status="trial", plan_key="trial", trial_end_date=NOW + timedelta(days=1))
    assert subscription_labels(trial, NOW) == ("Active Trial", "Free Trial", "N/A")
    assert subscription_labels(trial, NOW + timedelta(days=2))[0] == "Trial Expired"

    weekly = SimpleNamespace(status="active", plan_key="weekly", trial_end_date=None)
    assert subscription_labels(weekly, NOW) == ("Active Subscription", "Weekly ($5/week)", "Active")

    monthly = SimpleNamespace(status="past_due", plan_key="monthly", trial_end_date=None)
    assert subscription_labels(monthly, NOW) == ("Past Due", "Monthly ($29/month)", "Past Due")

    expired_trial = SimpleNamespace(status="expired", plan_key="trial", trial_end_date=NOW)
    assert subscription_labels(expired_trial, NOW)[0] == "Trial Expired"

    assert subscription_labels(None, NOW) == ("No Subscription", "None", "N/A")


@pytest.mark.asyncio
async def test_export_json(client):
    await signup(client, "first@example.com", full_name="First User")
    await signup(client, "second@example.com", full_name=None)

    response = await client.get("/api/admin/export-users", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["count"] == 2
    assert data["headers"] == EXPORT_HEADERS

    by_email = {row["email"]: row for row in data["users"]}
    assert by_email["first@example.com"]["subscription_status"] == "Active Trial"
    assert by_email["first@example.com"]["daily_limit"] == 20
    assert by_email["second@example.com"]["full_name"] == "Not Provided"


@pytest.mark.asyncio
async def test_export_csv(client):
    await signup(client, "csv@example.com")

    response = await client.get("/api/admin/export-users", params={"format": "csv"}, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == EXPORT_HEADERS
    assert rows[1][1] == "csv@example.com"


@pytest.mark.asyncio
async def test_export_actions(client):
    response = await client.post("/api/admin/export-users", json={"action": "setup"}, headers=ADMIN_HEADERS)
    assert response.json()["data"]["headers"] == EXPORT_HEADERS

    response = await client.post("/api/admin/export-users", json={"action": "sync"}, headers=ADMIN_HEADERS)
    assert response.json()["data"]["count"] == 0

    response = await client.post("/api/admin/export-users", json={"action": "drop"}, headers=ADMIN_HEADERS)
    assert response.status_code == 400
