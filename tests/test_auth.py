"""
Tests for UserRepository, the email/password auth endpoints and Google sign-in
"""
from unittest.mock import patch, AsyncMock

import pytest
from sqlalchemy import select, func

from crud.user import UserRepository, UserProfileRepository
from database_models import User
from crud.subscription import SubscriptionRepository
from auth_utils import hash_password, verify_password
from tests.conftest import signup, STRONG_PASSWORD


@pytest.mark.asyncio
async def test_create_and_get_user(test_db):
    """
    Test creating a new user and retrieving it by email.

    This test verifies:
    - User creation via UserRepository.create_user
    - User retrieval via UserRepository.get_user_by_email
    - Email matching and user object existence
    """
    user_repo = UserRepository(test_db)

    test_email = "Test@Example.com"
    hashed_pwd = hash_password(STRONG_PASSWORD)

    created_user = await user_repo.create_user({
        "email": test_email,
        "hashed_password": hashed_pwd,
        "full_name": "Ada Lovelace",
    })

    # Verify user was created with correct attributes
    assert created_user is not None
    assert created_user.email == test_email.lower()  # Email should be lowercased
    assert created_user.hashed_password == hashed_pwd
    assert created_user.is_active is True
    assert created_user.auth_provider == "email"

    await test_db.commit()

    retrieved_user = await user_repo.get_user_by_email("test@example.com")
    assert retrieved_user is not None
    assert retrieved_user.id == created_user.id


@pytest.mark.asyncio
async def test_login_verification(test_db):
    """
    Test password verification for login.

    This test verifies:
    - Correct password verification returns True
    - Incorrect password verification returns False
    - Users without a password hash never verify
    """
    user_repo = UserRepository(test_db)
    user = await user_repo.create_user({
        "email": "login_test@example.com",
        "hashed_password": hash_password(STRONG_PASSWORD),
    })
    await test_db.commit()

    assert verify_password(STRONG_PASSWORD, user.hashed_password) is True
    assert verify_password("WrongPass123!", user.hashed_password) is False
    assert verify_password(STRONG_PASSWORD, None) is False


@pytest.mark.asyncio
async def test_signup_creates_trial_and_profile(client, test_db):
    """
    Test the signup endpoint.

    This test verifies:
    - 201 with tokens in the body
    - the new account starts on an active trial with the daily quota
    - profile and subscription rows exist
    """
    account = await signup(client, "new_user@example.com")
    data = account["data"]

    assert data["user"]["email"] == "new_user@example.com"
    assert data["token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["subscription"]["status"] == "trial"
    assert data["subscription"]["has_active_access"] is True
    assert data["subscription"]["days_remaining"] == 7
    assert data["subscription"]["daily_limit"] == 20

    subscription = await SubscriptionRepository(test_db).get_current(data["user"]["id"])
    assert subscription is not None
    assert subscription.status == "trial"


@pytest.mark.asyncio
async def test_signup_sets_auth_cookies(client):
    response = await client.post("/api/auth/signup", json={
        "email": "cookies@example.com",
        "password": STRONG_PASSWORD,
    })
    assert response.status_code == 201
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("auth_token=") and "HttpOnly" in c for c in cookies)
    assert any(c.startswith("refresh_token=") for c in cookies)


@pytest.mark.asyncio
async def test_signup_rejects_duplicate_email(client):
    await signup(client, "dupe@example.com")
    response = await client.post("/api/auth/signup", json={
        "email": "DUPE@example.com",
        "password": STRONG_PASSWORD,
    })
    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_signup_rejects_invalid_email(client):
    response = await client.post("/api/auth/signup", json={"email": "not-an-email", "password": STRONG_PASSWORD})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_signin_success_and_failure(client):
    await signup(client, "signin@example.com")

    response = await client.post("/api/auth/signin", json={"email": "signin@example.com", "password": STRONG_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["last_login_at"] is not None
    client.cookies.clear()

    response = await client.post("/api/auth/signin", json={"email": "signin@example.com", "password": "WrongPass123!"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"

    response = await client.post("/api/auth/signin", json={"email": "nobody@example.com", "password": STRONG_PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_me_returns_user_and_subscription(client, auth_headers):
    response = await client.get("/api/auth/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["email"] == "candidate@example.com"
    assert data["has_profile"] is True
    assert data["subscription"]["status"] == "trial"


@pytest.mark.asyncio
async def test_me_requires_authentication(client):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_ERROR"


@pytest.mark.asyncio
async def test_refresh_token_exchange(client):
    account = await signup(client, "refresh@example.com")
    refresh_token = account["data"]["refresh_token"]

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    assert response.json()["data"]["token"]
    client.cookies.clear()

    # An access token is not accepted as a refresh token
    response = await client.post("/api/auth/refresh", json={"refresh_token": account["data"]["token"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_cannot_authenticate_requests(client):
    account = await signup(client, "refresh_misuse@example.com")
    headers = {"Authorization": f"Bearer {account['data']['refresh_token']}"}
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_signout_clears_cookies(client):
    response = await client.post("/api/auth/signout")
    assert response.status_code == 200
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("auth_token=") for c in cookies)


def google_profile(email="google_user@example.com", sub="google-sub-1", **overrides):
    return {"sub": sub, "email": email, "email_verified": True, "name": "Grace Hopper",
            "picture": "https://example.com/avatar.png", **overrides}


async def google_signin(client, profile):
    with patch("routers.google_auth_router.fetch_google_profile", new=AsyncMock(return_value=profile)):
        response = await client.post("/api/auth/google", json={"code": "auth-code"})
    client.cookies.clear()
    return response


@pytest.mark.asyncio
async def test_google_first_login_creates_account_with_trial(client, test_db):
    """
    Test Google sign-in for a new user.

    This test verifies:
    - the first call creates one user with a profile and a single trial
    - a second call signs the same user in without creating anything
    """
    first = await google_signin(client, google_profile())
    assert first.status_code == 200, first.text
    data = first.json()["data"]
    assert data["is_new_user"] is True
    assert data["token"]
    user_id = data["user"]["id"]

    second = await google_signin(client, google_profile())
    assert second.status_code == 200
    assert second.json()["data"]["is_new_user"] is False
    assert second.json()["data"]["user"]["id"] == user_id

    user_count = await test_db.scalar(select(func.count()).select_from(User))
    assert user_count == 1
    user = await UserRepository(test_db).get_user_by_id(user_id)
    assert user.google_id == "google-sub-1"
    assert user.hashed_password is None
    assert await UserProfileRepository(test_db).get_by_user(user_id) is not None
    subscriptions = await SubscriptionRepository(test_db).list_for_user(user_id)
    assert [s.status for s in subscriptions] == ["trial"]


@pytest.mark.asyncio
async def test_google_login_links_existing_password_account(client, test_db):
    account = await signup(client, "linked@example.com")
    user_id = account["data"]["user"]["id"]

    response = await google_signin(client, google_profile(email="Linked@Example.com", sub="google-sub-2"))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_new_user"] is False
    assert data["user"]["id"] == user_id

    user_count = await test_db.scalar(select(func.count()).select_from(User))
    assert user_count == 1
    user = await UserRepository(test_db).get_user_by_id(user_id)
    assert user.google_id == "google-sub-2"
    assert user.hashed_password is not None
    assert len(await SubscriptionRepository(test_db).list_for_user(user_id)) == 1

    signin = await client.post("/api/auth/signin", json={"email": "linked@example.com", "password": STRONG_PASSWORD})
    assert signin.status_code == 200


@pytest.mark.asyncio
async def test_google_login_rejects_unverified_or_missing_email(client, test_db):
    response = await google_signin(client, google_profile(email_verified=False))
    assert response.status_code == 401
    assert response.json()["code"] == "EMAIL_NOT_VERIFIED"

    response = await google_signin(client, google_profile(email=None))
    assert response.status_code == 400

    user_count = await test_db.scalar(select(func.count()).select_from(User))
    assert user_count == 0
