"""
Authentication routes and dependencies
"""

from typing import Optional
from fastapi import APIRouter, Header, Depends, Cookie
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from database import get_db
from database_models import User
from crud.user import UserRepository, UserProfileRepository
from auth_utils import hash_password, verify_password, create_jwt, create_refresh_jwt, decode_jwt, REFRESH_TOKEN
from backend.utils.errors import AuthenticationError, BadRequestError, ConflictError
from backend.utils.responses import success_response
from models.auth import SignupRequest, SigninRequest, RefreshRequest
from services.subscription_service import SubscriptionService
from services.usage_service import UsageService
from utils.shared_utils import get_cached, user_cache_key, invalidate_user_cache, utc_now
from utils.security_utils import validate_password_strength
from config import settings

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

AUTH_COOKIE = "auth_token"
REFRESH_COOKIE = "refresh_token"


def user_summary(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "avatar_url": user.avatar_url,
        "auth_provider": user.auth_provider,
        "created_at": user.created_at,
        "last_login_at": user.last_login_at,
    }


def set_auth_cookies(response: JSONResponse, token: str, refresh_token: Optional[str] = None) -> JSONResponse:
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=settings.access_token_days * 86400
    )
    if refresh_token:
        response.set_cookie(
            key=REFRESH_COOKIE,
            value=refresh_token,
            httponly=True,
            secure=True,
            samesite="Lax",
            max_age=settings.refresh_token_days * 86400,
            path="/api/auth"
        )
    return response


def token_payload(user: User) -> dict:
    return {
        "token": create_jwt(user.id),
        "refresh_token": create_refresh_jwt(user.id),
        "token_type": "bearer",
        "expires_in": settings.access_token_days * 86400,
    }


async def create_account(db: AsyncSession, user_data: dict) -> User:
    """
    Create a user with an empty profile, a trial subscription and today's usage row.
    Runs inside the request transaction, so a failure leaves nothing behind.
    """
    user_repo = UserRepository(db)
    user = await user_repo.create_user(user_data)
    await UserProfileRepository(db).create(user.id, {})

    subscription_service = SubscriptionService(db)
    subscription = await subscription_service.start_trial(user)
    await UsageService(db).today_usage(user.id, subscription)

    logger.info(f"Created {user.auth_provider} account for user {user.id}")
    return user


@auth_router.post("/signup")
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account with a free trial"""
    try:
        validate_password_strength(request.password)
    except ValueError as e:
        raise BadRequestError(str(e), code="WEAK_PASSWORD")

    user_repo = UserRepository(db)
    email = request.email.lower()
    if await user_repo.get_user_by_email(email):
        raise ConflictError("Email already registered")

    user = await create_account(db, {
        "email": email,
        "hashed_password": hash_password(request.password),
        "full_name": request.full_name,
        "auth_provider": "email",
    })
    user = await user_repo.update_user(user, {"last_login_at": utc_now()})
    access = await UsageService(db).status(user.id)

    tokens = token_payload(user)
    response = success_response(
        {"user": user_summary(user), "subscription": access.to_dict(), **tokens},
        message="Account created",
        status=201,
    )
    return set_auth_cookies(response, tokens["token"], tokens["refresh_token"])


@auth_router.post("/signin")
async def signin(request: SigninRequest, db: AsyncSession = Depends(get_db)):
    """Sign in with email and password"""
    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_email(request.email.lower())
    if not user or not verify_password(request.password, user.hashed_password):
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")

    if not user.is_active:
        raise AuthenticationError("User account is inactive", code="ACCOUNT_INACTIVE")

    user = await user_repo.update_user(user, {"last_login_at": utc_now()})
    tokens = token_payload(user)
    response = success_response({"user": user_summary(user), **tokens}, message="Signed in")
    return set_auth_cookies(response, tokens["token"], tokens["refresh_token"])


@auth_router.post("/refresh")
async def refresh(
    request: Optional[RefreshRequest] = None,
    refresh_token: Optional[str] = Cookie(None),
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token (body or cookie) for a new access token"""
    token = (request.refresh_token if request else None) or refresh_token
    if not token:
        raise AuthenticationError("Missing refresh token")

    payload = decode_jwt(token, expected_type=REFRESH_TOKEN)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired refresh token")

    user = await UserRepository(db).get_user_by_id(payload["sub"])
    if not user or not user.is_active:
        raise AuthenticationError("User not found")

    tokens = token_payload(user)
    response = success_response(tokens, message="Token refreshed")
    return set_auth_cookies(response, tokens["token"], tokens["refresh_token"])


@auth_router.post("/signout")
async def signout():
    """Sign out and clear auth cookies"""
    response = success_response(message="Signed out successfully")
    response.delete_cookie(AUTH_COOKIE, httponly=True, secure=True, samesite="Lax")
    response.delete_cookie(REFRESH_COOKIE, path="/api/auth", httponly=True, secure=True, samesite="Lax")
    return response


async def _get_user_data_with_caching(user_id: str, user_repo: UserRepository) -> dict:
    """
    Fetch user data with caching.

    Raises:
        AuthenticationError: If user is not found
    """
    async def fetch_user():
        user = await user_repo.get_user_by_id(user_id)
        if not user:
            raise AuthenticationError("User not found")
        return {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "auth_provider": user.auth_provider,
            "is_active": user.is_active,
        }

    # Cache user lookup for 300 seconds (5 minutes)
    return await get_cached(
        key=user_cache_key(user_id),
        fallback_func=fetch_user,
        ttl_seconds=300
    )


# Dependency for protected routes
async def get_current_user(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    Dependency function to get current authenticated user.

    Authentication priority:
    1. auth_token cookie (httpOnly cookie set by signin/signup)
    2. Authorization header (Bearer token) for API consumers
    """
    token = None
    if auth_token:
        token = auth_token
    elif authorization and authorization.startswith("Bearer "):
        token = authorization.replace("Bearer ", "").strip()

    if not token:
        raise AuthenticationError("Missing authentication token")

    payload = decode_jwt(token)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    user = await _get_user_data_with_caching(str(user_id), UserRepository(db))
    if not user.get("is_active"):
        raise AuthenticationError("User account is inactive", code="ACCOUNT_INACTIVE")

    return {
        "user_id": user["id"],
        "email": user["email"],
        "full_name": user.get("full_name"),
        "auth_provider": user.get("auth_provider"),
        "is_active": user["is_active"],
    }


async def load_user(db: AsyncSession, current_user: dict) -> User:
    """ORM row for the authenticated user; the cached dict may outlive a deleted row."""
    user = await UserRepository(db).get_user_by_id(current_user["user_id"])
    if user is None:
        invalidate_user_cache(current_user["user_id"])
        raise AuthenticationError("User not found")
    return user


@auth_router.get("/me")
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current user with profile and subscription summary"""
    user = await load_user(db, current_user)
    profile = await UserProfileRepository(db).get_by_user(user.id)
    access = await UsageService(db).status(user.id)
    return success_response({
        "user": user_summary(user),
        "has_profile": profile is not None,
        "subscription": access.to_dict(),
    })
